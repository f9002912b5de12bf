from __future__ import annotations

import asyncio
import sys
import os

# Ensure backend root is on sys.path when executed as a script from backend/scripts
_HERE = os.path.dirname(__file__)
_ROOT = os.path.dirname(_HERE)
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)


async def main(message_path: str | None = None) -> int:
    """Dry run: extract offers from one message and print what would be sent.

    Reads the message from `message_path` or stdin. Calls the oracle but never
    the gateway.
    """
    from mandi_relay.config import load_routing_config, setup_logging, validate_settings
    from mandi_relay.orchestrator.extraction import ExtractionOrchestrator
    from mandi_relay.orchestrator.router import consolidate, group_offers
    from mandi_relay.services.exceptions import ExtractionFailure
    from mandi_relay.services.llm_service import LLMService

    setup_logging()
    validate_settings(fail_on_missing_llm_key=True)
    routing = load_routing_config()

    if message_path:
        with open(message_path, "r", encoding="utf-8") as f:
            message = f.read()
    else:
        message = sys.stdin.read()

    extractor = ExtractionOrchestrator(LLMService(), languages=routing.target_languages)
    try:
        result = await extractor.extract(message)
    except ExtractionFailure as e:
        print(f"Extraction failed: {e}")
        return 2

    print(f"Parse mode: {result.mode}; {len(result.offers)} offer(s)")
    for offer in result.offers:
        print(f"- {offer.extracted_name} -> {offer.standardized_name} [{offer.category}]")

    buckets, dropped = group_offers(result.offers, routing)
    for category, bucket in buckets.items():
        for lang in routing.languages_for(category):
            text = consolidate(o.texts.get(lang, "") for o in bucket)
            print(f"\n=== {category} / {lang} -> {routing.route_for(category, lang)} ===")
            print(text or "<nothing to send>")
    if dropped:
        print(f"\nDropped (no route): {', '.join(dropped)}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    rc = asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None))
    sys.exit(rc)
