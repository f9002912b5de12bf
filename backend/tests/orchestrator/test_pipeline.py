import asyncio

import pytest

from mandi_relay.models.schemas import ChannelInfo, InboundMessage, StructuredOffer
from mandi_relay.orchestrator.admission import AutomationSwitch, SourceChannelLocks
from mandi_relay.orchestrator.extraction import ExtractionResult
from mandi_relay.orchestrator.pipeline import OfferPipeline
from mandi_relay.services.exceptions import ExtractionFailure
from mandi_relay.services.status_feed import RecordingStatusFeed


TUR = StructuredOffer(
    extracted_name="TUR", standardized_name="TOOR DAL", category="PULSES", texts={"en": "TUR 6200"}
)


class FakeTransport:
    def __init__(self):
        self.sent = []

    async def get_channel(self, channel_id):
        return ChannelInfo(channel_id=channel_id, name=channel_id, is_group=True)

    async def send(self, channel_id, text):
        self.sent.append((channel_id, text))

    async def list_channels(self):
        return []


class FakeExtractor:
    def __init__(self, offers=(), error=None, delay=0.0, on_extract=None, dropped=0):
        self.offers = list(offers)
        self.dropped = dropped
        self.error = error
        self.delay = delay
        self.on_extract = on_extract
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def extract(self, message):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.on_extract:
                self.on_extract()
            await asyncio.sleep(self.delay)
            self.calls.append(message)
            if self.error is not None:
                raise self.error
            return ExtractionResult(mode="strict", offers=self.offers, dropped=self.dropped)
        finally:
            self.active -= 1


def _message(source="seller-1@g.us", body="TUR 6200", is_group=True):
    return InboundMessage.model_validate(
        {"sourceChannelId": source, "isGroupChannel": is_group, "bodyText": body}
    )


def _pipeline(routing, extractor, enabled=True):
    status = RecordingStatusFeed()
    transport = FakeTransport()
    pipeline = OfferPipeline(
        routing,
        transport,
        extractor=extractor,
        automation=AutomationSwitch(enabled),
        status=status,
    )
    return pipeline, transport, status


@pytest.mark.asyncio
async def test_admitted_message_is_extracted_and_dispatched(routing):
    extractor = FakeExtractor([TUR])
    pipeline, transport, status = _pipeline(routing, extractor)

    report = await pipeline.handle(_message())

    assert extractor.calls == ["TUR 6200"]
    assert ("pulses-en@g.us", "TUR 6200") in transport.sent
    assert report is not None and report.sent
    assert status.names()[0] == "message-received"
    assert status.events[0][1]["source"] == "seller-1@g.us"


@pytest.mark.parametrize(
    "message,enabled",
    [
        (_message(), False),
        (_message(is_group=False), True),
        (_message(source="random-group@g.us"), True),
        (_message(body="   "), True),
    ],
    ids=["automation-off", "direct-message", "non-source-group", "empty-body"],
)
@pytest.mark.asyncio
async def test_not_admitted_messages_never_reach_the_oracle(routing, message, enabled):
    extractor = FakeExtractor([TUR])
    pipeline, transport, status = _pipeline(routing, extractor, enabled=enabled)

    assert await pipeline.handle(message) is None
    assert extractor.calls == []
    assert transport.sent == []
    assert status.events == []


@pytest.mark.asyncio
async def test_group_detection_falls_back_to_channel_id(routing):
    msg = InboundMessage.model_validate({"from": "seller-2@g.us", "body": "JEERA 21000"})
    assert msg.is_group is None and msg.is_group_channel
    extractor = FakeExtractor()
    pipeline, _, _ = _pipeline(routing, extractor)
    await pipeline.handle(msg)
    assert extractor.calls == ["JEERA 21000"]


@pytest.mark.asyncio
async def test_extraction_failure_aborts_cycle_without_sends(routing):
    extractor = FakeExtractor([TUR], error=ExtractionFailure("bad json"))
    pipeline, transport, status = _pipeline(routing, extractor)

    assert await pipeline.handle(_message()) is None
    assert transport.sent == []
    assert status.names() == ["message-received", "dispatch-error"]


@pytest.mark.asyncio
async def test_unexpected_error_is_contained(routing):
    extractor = FakeExtractor([TUR], error=KeyError("boom"))
    pipeline, transport, status = _pipeline(routing, extractor)

    assert await pipeline.handle(_message()) is None
    assert status.names()[-1] == "dispatch-error"


@pytest.mark.asyncio
async def test_zero_offers_produce_zero_sends(routing):
    pipeline, transport, status = _pipeline(routing, FakeExtractor([]))
    report = await pipeline.handle(_message(body="Good morning"))
    assert report is not None and report.results == []
    assert transport.sent == []
    assert status.names() == ["message-received", "dispatch-skipped"]


@pytest.mark.asyncio
async def test_dropped_offers_are_reported_on_status_feed(routing):
    pipeline, transport, status = _pipeline(routing, FakeExtractor([TUR], dropped=2))
    report = await pipeline.handle(_message())

    assert report is not None and report.sent
    assert status.names()[:2] == ["message-received", "dispatch-skipped"]
    payload = status.events[1][1]
    assert payload["dropped"] == 2
    assert payload["source"] == "seller-1@g.us"


@pytest.mark.asyncio
async def test_automation_flag_is_read_once_per_message(routing):
    automation = AutomationSwitch(True)
    extractor = FakeExtractor([TUR], on_extract=lambda: automation.set(False))
    pipeline = OfferPipeline(routing, FakeTransport(), extractor=extractor, automation=automation)

    first = await pipeline.handle(_message(body="first"))
    second = await pipeline.handle(_message(body="second"))

    assert first is not None and first.sent
    assert second is None
    assert extractor.calls == ["first"]


@pytest.mark.asyncio
async def test_same_source_cycles_are_serialized_in_arrival_order(routing):
    extractor = FakeExtractor(delay=0.02)
    pipeline, _, _ = _pipeline(routing, extractor)

    await asyncio.gather(*(pipeline.handle(_message(body=f"m{i}")) for i in range(3)))

    assert extractor.max_active == 1
    assert extractor.calls == ["m0", "m1", "m2"]


@pytest.mark.asyncio
async def test_different_sources_run_concurrently(routing):
    extractor = FakeExtractor(delay=0.02)
    pipeline, _, _ = _pipeline(routing, extractor)

    await asyncio.gather(
        pipeline.handle(_message(source="seller-1@g.us", body="a")),
        pipeline.handle(_message(source="seller-2@g.us", body="b")),
    )

    assert extractor.max_active == 2
    assert len(pipeline.locks) == 2


def test_source_locks_are_reused_per_channel():
    locks = SourceChannelLocks()
    assert locks.lock_for("a") is locks.lock_for("a")
    assert locks.lock_for("a") is not locks.lock_for("b")


def test_automation_switch():
    switch = AutomationSwitch()
    assert switch.enabled is False
    assert switch.set(True) is True
    assert switch.enabled is True
