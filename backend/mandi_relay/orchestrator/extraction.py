from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from mandi_relay.models.parse_result import ParsedLenient, ParsedStrict, ParseFailed, ParseOutcome
from mandi_relay.models.schemas import RawOfferCandidate, StructuredOffer
from mandi_relay.processing.corrections import CORRECTIONS, LanguageCorrections, apply_corrections
from mandi_relay.processing.formatting import format_offer_text
from mandi_relay.processing.lexicon import LEXICON, Lexicon
from mandi_relay.prompts.extraction_prompt import build_extraction_prompt
from mandi_relay.services.exceptions import ExtractionFailure, ValidationDrop


REQUIRED_FIELDS = ("extractedName", "standardizedName", "category", "details")

_JSON_FENCE_RE = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_ANY_FENCE_RE = re.compile(r"```\s*(.*?)\s*```", re.DOTALL)


def _fenced_block(text: str) -> Optional[str]:
    m = _JSON_FENCE_RE.search(text) or _ANY_FENCE_RE.search(text)
    return m.group(1) if m else None


def _strict_array(text: str) -> List[Any]:
    block = _fenced_block(text)
    if block is None:
        logging.getLogger(__name__).warning("No fenced block in oracle response; parsing raw body")
    data = json.loads(block if block is not None else text.strip())
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array, got {type(data).__name__}")
    return data


def _balanced_objects(text: str) -> Generator[Tuple[int, int], Optional[int], None]:
    """Yield (start, end) of every brace-balanced {...} span, string/escape aware.

    Spans are yielded outermost first; the caller decides whether to descend
    into a span (by resuming at start + 1) or skip past it.
    """
    pos = 0
    n = len(text)
    while True:
        start = text.find("{", pos)
        if start == -1:
            return
        depth = 0
        in_str = False
        escaped = False
        end = -1
        for i in range(start, n):
            ch = text[i]
            if in_str:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_str = False
                continue
            if ch == '"':
                in_str = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    end = i
                    break
        if end == -1:
            # Unterminated (truncated response): look for complete objects inside it.
            pos = start + 1
            continue
        resume = yield (start, end)
        pos = resume if resume is not None else end + 1


def _lenient_objects(text: str) -> List[Dict[str, Any]]:
    logger = logging.getLogger(__name__)
    block = _fenced_block(text)
    content = block if block is not None else text
    found: List[Dict[str, Any]] = []
    scanner = _balanced_objects(content)
    try:
        span = next(scanner)
        while True:
            start, end = span
            candidate = content[start:end + 1]
            try:
                obj = json.loads(candidate)
            except (ValueError, RecursionError) as e:
                logger.debug("Lenient parse skipped %r...: %s", candidate[:50], e)
                obj = None
            if isinstance(obj, dict) and all(obj.get(k) for k in REQUIRED_FIELDS):
                found.append(obj)
                span = scanner.send(end + 1)
            else:
                # Wrapper object or broken offer: look inside it.
                span = scanner.send(start + 1)
    except StopIteration:
        pass
    return found


def _to_candidate(item: Any) -> Optional[RawOfferCandidate]:
    logger = logging.getLogger(__name__)
    if not isinstance(item, dict):
        logger.warning("Skipping non-object oracle offer: %r", item)
        return None
    try:
        return RawOfferCandidate.model_validate(item)
    except ValidationError as e:
        logger.warning("Skipping malformed oracle offer %r: %s", item, e)
        return None


def parse_oracle_response(text: str) -> ParseOutcome:
    """Strict fenced-array parse first, then the lenient brace scan."""
    logger = logging.getLogger(__name__)
    text = text or ""
    try:
        items = _strict_array(text)
    except (ValueError, RecursionError) as strict_err:
        logger.warning("Strict parse of oracle response failed: %s", strict_err)
        recovered = [c for c in (_to_candidate(o) for o in _lenient_objects(text)) if c is not None]
        if recovered:
            logger.warning("Lenient parse recovered %d offer(s); translations may be partial", len(recovered))
            return ParsedLenient(tuple(recovered))
        return ParseFailed(f"strict parse failed ({strict_err}) and lenient scan found no offers")

    candidates = [c for c in (_to_candidate(item) for item in items) if c is not None]
    return ParsedStrict(tuple(candidates))


@dataclass
class ExtractionResult:
    mode: str
    offers: List[StructuredOffer] = field(default_factory=list)
    dropped: int = 0


class ExtractionOrchestrator:
    def __init__(self,
                 llm: Any,
                 languages: Sequence[str] = ("en",),
                 lexicon: Lexicon = LEXICON,
                 corrections: Mapping[str, LanguageCorrections] = CORRECTIONS) -> None:
        self.llm = llm
        self.languages = [lang.strip().lower() for lang in languages]
        self.lexicon = lexicon
        self.corrections = corrections

    def build_prompt(self, message: str) -> str:
        return build_extraction_prompt(message, self.languages, self.lexicon, self.corrections)

    async def extract(self, message: str) -> ExtractionResult:
        """Run one oracle round-trip for `message`.

        Raises ExtractionFailure if the oracle call fails or nothing parses.
        An empty offer list is a valid result (message had no offers).
        """
        logger = logging.getLogger(__name__)
        try:
            raw = await self.llm.generate(self.build_prompt(message))
        except ExtractionFailure:
            raise
        except Exception as e:
            raise ExtractionFailure(f"Oracle call failed: {e}") from e
        logger.debug("Oracle raw response: %s", raw)

        outcome = parse_oracle_response(raw)
        if isinstance(outcome, ParseFailed):
            raise ExtractionFailure(outcome.reason)
        offers, dropped = self.normalize(outcome)
        logger.info(
            "Extraction (%s): %d candidate(s) -> %d offer(s), %d dropped",
            outcome.mode, len(outcome.offers), len(offers), dropped,
        )
        return ExtractionResult(mode=outcome.mode, offers=offers, dropped=dropped)

    def normalize(self, outcome: ParseOutcome) -> Tuple[List[StructuredOffer], int]:
        """Validate and correct every candidate, keyed by upper-cased extracted name.

        A later candidate with the same extracted name replaces the earlier one
        and keeps its position. Returns the offers and the number of candidates
        dropped as invalid.
        """
        logger = logging.getLogger(__name__)
        if isinstance(outcome, ParseFailed):
            return [], 0
        lenient = isinstance(outcome, ParsedLenient)
        keyed: Dict[str, StructuredOffer] = {}
        dropped = 0
        for cand in outcome.offers:
            try:
                offer = self._normalize_candidate(cand, lenient=lenient)
            except ValidationDrop as e:
                logger.warning("Dropping oracle offer %r: %s", cand.extracted_name, e)
                dropped += 1
                continue
            key = (offer.extracted_name or offer.standardized_name).upper()
            if key in keyed:
                logger.warning("Duplicate offer %r in one message; keeping the later one", key)
            keyed[key] = offer
        return list(keyed.values()), dropped

    def _normalize_candidate(self, cand: RawOfferCandidate, lenient: bool = False) -> StructuredOffer:
        standardized = (cand.standardized_name or "").strip().upper()
        category = (cand.category or "").strip().upper()
        if not standardized:
            raise ValidationDrop("missing standardizedName")
        if not category:
            raise ValidationDrop("missing category")
        if not cand.details:
            raise ValidationDrop("missing details")

        entry = self.lexicon.resolve(standardized)
        if entry is not None:
            standardized, category = entry.standardized_name, entry.category
        if lenient:
            recovered = self.lexicon.resolve_leading(cand.extracted_name)
            if recovered is not None:
                standardized, category = recovered.standardized_name, recovered.category

        texts: Dict[str, str] = {}
        for lang in self.languages:
            raw = cand.details.get(lang)
            if not raw or not raw.strip():
                continue
            text = apply_corrections(lang, format_offer_text(raw), standardized, self.corrections)
            if text.strip():
                texts[lang] = text
        if not texts:
            raise ValidationDrop(f"no text for any of {', '.join(self.languages)}")

        return StructuredOffer(
            extracted_name=cand.extracted_name.strip(),
            standardized_name=standardized,
            category=category,
            texts=texts,
        )
