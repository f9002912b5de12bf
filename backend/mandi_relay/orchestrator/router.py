from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from mandi_relay.models.languages import LanguageProfile, profile_for
from mandi_relay.models.schemas import DispatchReport, RoutingConfig, SendResult, StructuredOffer
from mandi_relay.models.state_machine import StateMachine, States
from mandi_relay.services.exceptions import ConfigurationDefect, DispatchFailure
from mandi_relay.services.status_feed import StatusFeed
from mandi_relay.services.transport import Transport


OFFER_SEPARATOR = "\n\n-----------------\n\n"


def require_route(routing: RoutingConfig, category: str) -> None:
    if not routing.has_route(category):
        raise ConfigurationDefect(f"no route configured for category {category}")


def group_offers(offers: Iterable[StructuredOffer],
                 routing: RoutingConfig) -> Tuple[Dict[str, List[StructuredOffer]], List[str]]:
    """Bucket offers by category in first-seen order.

    Categories with no destination channel are dropped and returned separately.
    """
    logger = logging.getLogger(__name__)
    buckets: Dict[str, List[StructuredOffer]] = {}
    dropped: List[str] = []
    for offer in offers:
        category = offer.category.upper()
        try:
            require_route(routing, category)
        except ConfigurationDefect as e:
            if category not in dropped:
                logger.warning("%s; dropping its offers", e, extra={"category": category})
                dropped.append(category)
            continue
        buckets.setdefault(category, []).append(offer)
    return buckets, dropped


def consolidate(texts: Iterable[str]) -> str:
    return OFFER_SEPARATOR.join(t.strip() for t in texts if t and t.strip())


def category_section(category: str, profile: LanguageProfile, text: str) -> str:
    return f"--- {category} ({profile.label}) ---\n{text}"


def build_broadcast(profile: LanguageProfile, sections: Sequence[str]) -> str:
    return profile.banner + "\n\n" + profile.category_separator.join(sections)


class OfferRouter:
    """Sends one message's offers to the buyer channels, then the broadcast bundle.

    Every send is attempted once; failures are recorded in the returned
    DispatchReport and never stop the remaining sends.
    """

    def __init__(self, transport: Transport, routing: RoutingConfig, status: Optional[StatusFeed] = None) -> None:
        self.transport = transport
        self.routing = routing
        self.status = status or StatusFeed()

    async def dispatch(self, offers: Sequence[StructuredOffer]) -> DispatchReport:
        logger = logging.getLogger(__name__)
        sm = StateMachine()
        report = DispatchReport()
        if not offers:
            logger.info("No offers to dispatch")
            sm.transition(States.DONE)
            return report

        sm.transition(States.GROUPING)
        buckets, dropped = group_offers(offers, self.routing)
        report.dropped_categories.extend(dropped)
        for category in dropped:
            await self.status.publish(
                StatusFeed.DISPATCH_SKIPPED, f"No route for {category}; its offers were dropped",
                category=category,
            )
        if not buckets:
            sm.transition(States.DONE)
            return report

        sm.transition(States.DISPATCHING)
        accumulators: Dict[str, List[str]] = {}
        for category, bucket in buckets.items():
            for language in self.routing.languages_for(category):
                result = await self._send_category(category, language, bucket, accumulators)
                report.results.append(result)

        sm.transition(States.BROADCASTING)
        report.results.extend(await self._broadcast(accumulators))
        sm.transition(States.DONE)

        logger.info(
            "Dispatch done: sent=%d skipped=%d failed=%d dropped=%s",
            len(report.sent), len(report.skipped), len(report.failed), ",".join(dropped) or "-",
        )
        return report

    async def _deliver(self, channel_id: str, text: str) -> None:
        try:
            info = await self.transport.get_channel(channel_id)
        except Exception as e:
            raise DispatchFailure(channel_id, f"channel lookup failed: {e}") from e
        if info is None or not info.is_group:
            raise DispatchFailure(channel_id, "not a reachable group channel")
        try:
            await self.transport.send(channel_id, text)
        except Exception as e:
            raise DispatchFailure(channel_id, f"send failed: {e}") from e

    async def _send_category(self,
                             category: str,
                             language: str,
                             bucket: Sequence[StructuredOffer],
                             accumulators: Dict[str, List[str]]) -> SendResult:
        logger = logging.getLogger(__name__)
        channel_id = self.routing.route_for(category, language)
        extra = {"category": category, "language": language, "channel": channel_id}
        text = consolidate(offer.texts.get(language, "") for offer in bucket)
        if not text:
            logger.info("Nothing to send for %s/%s", category, language, extra=extra)
            await self.status.publish(
                StatusFeed.DISPATCH_SKIPPED, f"No {language} text for {category}",
                category=category, language=language,
            )
            return SendResult(language=language, status="skipped", category=category,
                              channel_id=channel_id, detail="empty consolidated text")
        try:
            await self._deliver(channel_id, text)
        except DispatchFailure as e:
            logger.error("Dispatch %s/%s failed: %s", category, language, e, extra=extra)
            await self.status.publish(
                StatusFeed.DISPATCH_ERROR, f"Failed to send {category} ({language}): {e}",
                category=category, language=language, channel=channel_id,
            )
            return SendResult(language=language, status="failed", category=category,
                              channel_id=channel_id, detail=str(e))

        logger.info("Sent %d offer(s) for %s/%s", len(bucket), category, language, extra=extra)
        await self.status.publish(
            StatusFeed.DISPATCH_SUCCESS, f"Sent {category} ({language})",
            category=category, language=language, channel=channel_id,
        )
        section = category_section(category, profile_for(language), text)
        accumulators.setdefault(language, []).append(section)
        return SendResult(language=language, status="sent", category=category, channel_id=channel_id)

    async def _broadcast(self, accumulators: Dict[str, List[str]]) -> List[SendResult]:
        logger = logging.getLogger(__name__)
        channel_id = self.routing.broadcast_channel
        languages = list(self.routing.target_languages)
        languages += [lang for lang in accumulators if lang not in languages]

        results: List[SendResult] = []
        for language in languages:
            sections = accumulators.get(language) or []
            extra = {"language": language, "channel": channel_id}
            if not sections:
                logger.info("Nothing to broadcast in %s", language, extra=extra)
                results.append(SendResult(language=language, status="skipped", channel_id=channel_id,
                                          detail="empty broadcast bundle"))
                continue
            if not channel_id:
                logger.warning("Broadcast channel not configured; skipping %s bundle", language, extra=extra)
                await self.status.publish(
                    StatusFeed.DISPATCH_SKIPPED, f"Broadcast ({language}) skipped: no broadcast channel configured",
                    language=language,
                )
                results.append(SendResult(language=language, status="skipped", detail="broadcast channel not set"))
                continue
            try:
                await self._deliver(channel_id, build_broadcast(profile_for(language), sections))
            except DispatchFailure as e:
                logger.error("Broadcast %s failed: %s", language, e, extra=extra)
                await self.status.publish(
                    StatusFeed.DISPATCH_ERROR, f"Broadcast ({language}) failed: {e}",
                    language=language, channel=channel_id,
                )
                results.append(SendResult(language=language, status="failed", channel_id=channel_id,
                                          detail=str(e)))
                continue
            logger.info("Broadcast %d section(s) in %s", len(sections), language, extra=extra)
            await self.status.publish(
                StatusFeed.DISPATCH_SUCCESS, f"Broadcast sent ({language})",
                language=language, channel=channel_id,
            )
            results.append(SendResult(language=language, status="sent", channel_id=channel_id))
        return results
