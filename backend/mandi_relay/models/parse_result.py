from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Tuple, Union

from mandi_relay.models.schemas import RawOfferCandidate


@dataclass(frozen=True)
class ParsedStrict:
    """The fenced block (or whole body) parsed as a JSON array."""

    offers: Tuple[RawOfferCandidate, ...]
    mode: ClassVar[str] = "strict"


@dataclass(frozen=True)
class ParsedLenient:
    """Objects recovered one by one; per-language details may be incomplete."""

    offers: Tuple[RawOfferCandidate, ...]
    mode: ClassVar[str] = "lenient"


@dataclass(frozen=True)
class ParseFailed:
    reason: str
    mode: ClassVar[str] = "failed"


ParseOutcome = Union[ParsedStrict, ParsedLenient, ParseFailed]
