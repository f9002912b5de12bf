import os
import json
import logging

from pydantic import ValidationError

from mandi_relay.models.schemas import RoutingConfig
from mandi_relay.processing.lexicon import LEXICON, Lexicon


_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _asbool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    GEMINI_API_KEY: str | None = os.getenv("GEMINI_API_KEY")
    OFFER_MODEL: str = os.getenv("OFFER_MODEL", "gemini-2.5-flash")

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON: bool = _asbool(os.getenv("LOG_JSON"), False)

    ROUTING_CONFIG_PATH: str = os.getenv(
        "ROUTING_CONFIG_PATH", os.path.join(_BACKEND_DIR, "config", "routing.json")
    )
    # Automation is OFF until an operator turns it on from the control surface.
    AUTOMATION_ENABLED: bool = _asbool(os.getenv("AUTOMATION_ENABLED"), False)

    GATEWAY_URL: str = os.getenv("GATEWAY_URL", "http://whatsapp-gateway:3001")
    GATEWAY_TOKEN: str | None = os.getenv("GATEWAY_TOKEN")
    GATEWAY_TIMEOUT: float = float(os.getenv("GATEWAY_TIMEOUT", "30"))
    WEBHOOK_TOKEN: str | None = os.getenv("WEBHOOK_TOKEN")


settings = Settings()


def mask(value: str | None) -> str:
    if not value:
        return "<unset>"
    if len(value) <= 6:
        return "***"
    return value[:3] + "***" + value[-2:]


def validate_settings(fail_on_missing_llm_key: bool = True) -> None:
    """
    Validate critical configuration and log non-sensitive values.

    Offer extraction cannot run without `GEMINI_API_KEY`, so by default a
    missing key fails startup instead of failing every inbound message.
    """
    logging.getLogger(__name__).info(
        "Config: ENV=%s, MODEL=%s, ROUTING=%s, GATEWAY=%s, GATEWAY_TOKEN=%s, GEMINI_API_KEY=%s",
        settings.ENVIRONMENT,
        settings.OFFER_MODEL,
        settings.ROUTING_CONFIG_PATH,
        settings.GATEWAY_URL,
        mask(settings.GATEWAY_TOKEN),
        mask(settings.GEMINI_API_KEY),
    )

    if fail_on_missing_llm_key and not settings.GEMINI_API_KEY:
        raise RuntimeError(
            "GEMINI_API_KEY is required for offer extraction. Set it in the environment/.env."
        )


def load_routing_config(path: str | None = None, lexicon: Lexicon = LEXICON) -> RoutingConfig:
    """Load the routing file once at startup and report configuration defects.

    Unrouted categories are not fatal: their offers are dropped at dispatch
    time, so they are only logged here.
    """
    logger = logging.getLogger(__name__)
    path = path or settings.ROUTING_CONFIG_PATH
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError:
        raise RuntimeError(f"Routing config not found: {path}")
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Routing config {path} is not valid JSON: {e}")
    try:
        routing = RoutingConfig.model_validate(raw)
    except ValidationError as e:
        raise RuntimeError(f"Routing config {path} is invalid: {e}")

    for category in lexicon.categories:
        if not routing.has_route(category):
            logger.warning("No destination channels configured for category %s", category)
    for category in routing.routes:
        if category not in lexicon.categories:
            logger.warning("Routing entry for unknown category %s", category)
    if not routing.source_channels:
        logger.warning("No source channels configured; every inbound message will be skipped")
    if not routing.broadcast_channel:
        logger.warning("Broadcast channel is not configured; broadcast bundles will be skipped")

    logger.info(
        "Routing: sources=%d categories=%s languages=%s broadcast=%s",
        len(routing.source_channels),
        ",".join(routing.routes) or "-",
        ",".join(routing.target_languages),
        routing.broadcast_channel or "<unset>",
    )
    return routing


def setup_logging() -> None:
    """Configure root logging based on LOG_LEVEL and output to stdout.

    Safe to call multiple times; subsequent calls are ignored if handlers exist.
    """
    if logging.getLogger().handlers:
        return
    level = getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO)

    if settings.LOG_JSON:
        class JsonFormatter(logging.Formatter):
            def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
                import time
                payload = {
                    "ts": getattr(record, "created", time.time()),
                    "level": record.levelname,
                    "logger": record.name,
                    "msg": record.getMessage(),
                }
                # Common extras if present
                for k in ("source", "category", "language", "channel"):
                    if hasattr(record, k):
                        payload[k] = getattr(record, k)
                return json.dumps(payload, ensure_ascii=False)

        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(JsonFormatter())
        root = logging.getLogger()
        root.setLevel(level)
        root.addHandler(handler)
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        )
