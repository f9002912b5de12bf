import hmac
import logging
import os
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import socketio

from mandi_relay.config import load_routing_config, settings, setup_logging, validate_settings
from mandi_relay.models.schemas import InboundMessage
from mandi_relay.orchestrator.admission import AutomationSwitch
from mandi_relay.orchestrator.pipeline import OfferPipeline
from mandi_relay.services.exceptions import TransportError
from mandi_relay.services.llm_service import LLMService
from mandi_relay.services.status_feed import StatusFeed
from mandi_relay.services.transport import GatewayTransport


fastapi_app = FastAPI(title="Mandi Relay", version="0.1.0")


def _allowed_origins_from_env() -> list[str]:
    """Compute allowed origins for CORS and Socket.IO.

    Defaults to the local dashboard origins and extends with `ALLOWED_ORIGINS`
    (comma-separated). Bare hosts get both http and https variants.
    """
    base = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    tokens = [t.strip() for t in os.getenv("ALLOWED_ORIGINS", "").split(",") if t.strip()]
    for t in tokens:
        if "://" in t:
            base.append(t)
        else:
            base.append(f"http://{t}")
            base.append(f"https://{t}")
    seen: set[str] = set()
    out: list[str] = []
    for o in base:
        if o not in seen:
            seen.add(o)
            out.append(o)
    return out


_ALLOWED_ORIGINS = _allowed_origins_from_env()

fastapi_app.add_middleware(
    CORSMiddleware,
    allow_origins=_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=_ALLOWED_ORIGINS,
    ping_timeout=60,
    ping_interval=25,
)


async def _emit_status(channel: str, payload: Dict[str, Any]) -> None:
    await sio.emit(channel, payload)


# Core singletons; the pipeline needs the routing file and is built at startup.
automation = AutomationSwitch(settings.AUTOMATION_ENABLED)
status_feed = StatusFeed(emit=_emit_status)
transport = GatewayTransport()
pipeline: Optional[OfferPipeline] = None


async def _log_group_channels() -> None:
    logger = logging.getLogger(__name__)
    try:
        channels = await transport.list_channels()
    except TransportError as e:
        logger.warning("Could not list gateway channels: %s", e)
        return
    groups = [c for c in channels if c.is_group]
    logger.info("Gateway reports %d group channel(s)", len(groups))
    for c in groups:
        logger.info("  group %r -> %s", c.name, c.channel_id)


@fastapi_app.on_event("startup")
async def _startup():
    global pipeline
    try:
        setup_logging()
        validate_settings(fail_on_missing_llm_key=True)
        routing = load_routing_config()
        pipeline = OfferPipeline(
            routing,
            transport,
            llm=LLMService(),
            automation=automation,
            status=status_feed,
        )
    except Exception as e:
        logging.getLogger(__name__).error("Startup validation failed: %s", e)
        raise
    await _log_group_channels()
    logging.getLogger(__name__).info(
        "Relay startup complete (automation %s)", "ON" if automation.enabled else "OFF"
    )


@fastapi_app.get("/health")
def health_check():
    return {"status": "ok", "automation": automation.enabled, "ready": pipeline is not None}


class AutomationToggle(BaseModel):
    enabled: bool


def _automation_payload() -> Dict[str, Any]:
    return {"enabled": automation.enabled}


@fastapi_app.get("/api/automation")
async def get_automation() -> Dict[str, Any]:
    return _automation_payload()


@fastapi_app.post("/api/automation")
async def set_automation(body: AutomationToggle) -> Dict[str, Any]:
    automation.set(body.enabled)
    await sio.emit("automation_status", _automation_payload())
    return _automation_payload()


@fastapi_app.post("/api/messages", status_code=202)
async def receive_message(
    message: InboundMessage,
    background: BackgroundTasks,
    x_relay_token: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    if settings.WEBHOOK_TOKEN and not hmac.compare_digest(x_relay_token or "", settings.WEBHOOK_TOKEN):
        raise HTTPException(status_code=401, detail="invalid relay token")
    if pipeline is None:
        raise HTTPException(status_code=503, detail="relay is not ready")
    background.add_task(pipeline.handle, message)
    return {"accepted": True}


@sio.event
async def connect(sid, environ, auth):  # type: ignore[no-redef]
    logging.getLogger(__name__).info("Socket connected: %s", sid)
    await sio.emit("automation_status", _automation_payload(), to=sid)


@sio.event
async def disconnect(sid):  # type: ignore[no-redef]
    logging.getLogger(__name__).info("Socket disconnected: %s", sid)


@sio.event
async def toggle_automation(sid, data):  # type: ignore[no-redef]
    # Clients send either a bare boolean or {"enabled": bool}.
    enabled = data.get("enabled") if isinstance(data, dict) else data
    if not isinstance(enabled, bool):
        await sio.emit("app_error", {"message": "toggle_automation expects a boolean"}, to=sid)
        return
    automation.set(enabled)
    logging.getLogger(__name__).info("Automation set to %s by socket %s", enabled, sid)
    await sio.emit("automation_status", _automation_payload())


# Wrap FastAPI app with Socket.IO ASGIApp at default path '/socket.io'
app = socketio.ASGIApp(sio, other_asgi_app=fastapi_app)
