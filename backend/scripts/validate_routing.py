from __future__ import annotations

import asyncio
import sys
import os

# Ensure backend root is on sys.path when executed as a script from backend/scripts
_HERE = os.path.dirname(__file__)
_ROOT = os.path.dirname(_HERE)
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)


async def main(path: str | None = None) -> int:
    from mandi_relay.config import load_routing_config, setup_logging
    from mandi_relay.services.exceptions import TransportError
    from mandi_relay.services.transport import GatewayTransport

    setup_logging()
    ok = True
    messages: list[str] = []

    # 1) Routing file parses
    try:
        routing = load_routing_config(path)
    except RuntimeError as e:
        print(e)
        return 2

    # 2) Group channels visible to the gateway
    transport = GatewayTransport()
    try:
        channels = await transport.list_channels()
    except TransportError as e:
        print(f"Gateway listing failed: {e}")
        return 2
    groups = {c.channel_id: c for c in channels if c.is_group}
    messages.append(f"Gateway reports {len(groups)} group channel(s):")
    for c in groups.values():
        messages.append(f"  {c.name!r} -> {c.channel_id}")

    # 3) Every configured id resolves to a group
    referenced: list[tuple[str, str]] = [("source", cid) for cid in routing.source_channels]
    for category, by_lang in routing.routes.items():
        for lang, cid in by_lang.items():
            referenced.append((f"route {category}/{lang}", cid))
    if routing.broadcast_channel:
        referenced.append(("broadcast", routing.broadcast_channel))

    for role, cid in referenced:
        if cid in groups:
            messages.append(f"OK   {role}: {groups[cid].name!r} ({cid})")
        else:
            ok = False
            messages.append(f"FAIL {role}: {cid} is not a reachable group channel")

    # 4) Target languages without a route anywhere
    for lang in routing.target_languages:
        if not any(lang in by_lang for by_lang in routing.routes.values()):
            messages.append(f"WARN target language {lang!r} has no destination channel in any category")

    for m in messages:
        print(m)
    return 0 if ok else 2


if __name__ == "__main__":  # pragma: no cover
    rc = asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None))
    sys.exit(rc)
