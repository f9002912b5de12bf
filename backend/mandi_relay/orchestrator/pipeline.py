from __future__ import annotations

import logging
from typing import Optional

from mandi_relay.models.schemas import DispatchReport, InboundMessage, RoutingConfig
from mandi_relay.orchestrator.admission import AutomationSwitch, SourceChannelLocks
from mandi_relay.orchestrator.extraction import ExtractionOrchestrator
from mandi_relay.orchestrator.router import OfferRouter
from mandi_relay.services.exceptions import ExtractionFailure
from mandi_relay.services.status_feed import StatusFeed
from mandi_relay.services.transport import Transport


class OfferPipeline:
    """Inbound message -> admission -> extraction -> dispatch, one cycle per message."""

    def __init__(self,
                 routing: RoutingConfig,
                 transport: Transport,
                 llm=None,
                 extractor: Optional[ExtractionOrchestrator] = None,
                 router: Optional[OfferRouter] = None,
                 automation: Optional[AutomationSwitch] = None,
                 status: Optional[StatusFeed] = None,
                 locks: Optional[SourceChannelLocks] = None) -> None:
        self.routing = routing
        self.status = status or StatusFeed()
        self.automation = automation or AutomationSwitch()
        self.locks = locks or SourceChannelLocks()
        if extractor is None:
            if llm is None:
                from mandi_relay.services.llm_service import LLMService
                llm = LLMService()
            extractor = ExtractionOrchestrator(llm, languages=routing.target_languages)
        self.extractor = extractor
        self.router = router or OfferRouter(transport, routing, self.status)

    def admit(self, message: InboundMessage, automation_on: bool) -> bool:
        logger = logging.getLogger(__name__)
        source = message.source_channel_id
        if not message.is_group_channel:
            logger.debug("Ignoring direct message from %s", source)
            return False
        if not self.routing.is_source(source):
            logger.debug("Ignoring message from non-source group %s", source)
            return False
        if not automation_on:
            logger.info("Automation is OFF; skipping message from seller group %s", source, extra={"source": source})
            return False
        if not message.body.strip():
            logger.info("Empty message from %s; nothing to extract", source, extra={"source": source})
            return False
        return True

    async def handle(self, message: InboundMessage) -> Optional[DispatchReport]:
        """Process one inbound message. Returns None when it was not admitted or the cycle aborted."""
        logger = logging.getLogger(__name__)
        # Read the flag once; a toggle during the cycle applies to the next message.
        automation_on = self.automation.enabled
        if not self.admit(message, automation_on):
            return None

        source = message.source_channel_id
        async with self.locks.lock_for(source):
            logger.info("Processing message from %s (%d chars)", source, len(message.body), extra={"source": source})
            await self.status.publish(
                StatusFeed.MESSAGE_RECEIVED, f"New message from {source}", source=source,
            )
            try:
                result = await self.extractor.extract(message.body)
                if result.dropped:
                    await self.status.publish(
                        StatusFeed.DISPATCH_SKIPPED, f"{result.dropped} offer(s) dropped as invalid",
                        source=source, dropped=result.dropped,
                    )
                if not result.offers:
                    logger.info("No offers extracted from %s", source, extra={"source": source})
                    await self.status.publish(
                        StatusFeed.DISPATCH_SKIPPED, "No offers found in message", source=source,
                    )
                    return DispatchReport()
                return await self.router.dispatch(result.offers)
            except ExtractionFailure as e:
                logger.error("Extraction failed for message from %s: %s", source, e, extra={"source": source})
                await self.status.publish(
                    StatusFeed.DISPATCH_ERROR, f"Extraction failed: {e}", source=source,
                )
                return None
            except Exception as e:
                logger.exception("Unexpected error processing message from %s", source)
                await self.status.publish(
                    StatusFeed.DISPATCH_ERROR, f"Processing error: {e}", source=source,
                )
                return None
