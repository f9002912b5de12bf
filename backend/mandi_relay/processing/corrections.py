from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Pattern, Tuple


_TELUGU_BLOCK = "\u0C00-\u0C7F"


def _term_pattern(term: str) -> str:
    # "TOOR DAL" also matches "TOORDAL" / "TOOR  DAL"
    return r"\s*".join(re.escape(word) for word in term.split())


def _bounded(alternatives: List[str], script_block: str) -> Pattern[str]:
    # \b is unreliable next to combining vowel signs, so bound on the script block.
    body = "|".join(_term_pattern(a) for a in alternatives)
    return re.compile(
        rf"(?<![\w{script_block}])(?:{body})(?![\w{script_block}])",
        re.IGNORECASE,
    )


@dataclass(frozen=True)
class Substitution:
    """Replace any known-wrong rendering with one designated rendering."""

    desired: str
    wrong: Tuple[str, ...]
    source_term: str = ""
    script_block: str = _TELUGU_BLOCK
    pattern: Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # The desired form is tried first so an already-correct rendering
        # (which may contain a wrong one as a prefix) is left as is.
        wrong = sorted(self.wrong, key=len, reverse=True)
        object.__setattr__(self, "pattern", _bounded([self.desired, *wrong], self.script_block))

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.desired, text)


@dataclass(frozen=True)
class LanguageCorrections:
    language: str
    generic: Tuple[Substitution, ...] = ()
    crops: Mapping[str, Substitution] = field(default_factory=dict)

    def apply(self, text: str, standardized_name: Optional[str] = None) -> str:
        for sub in self.generic:
            text = sub.apply(text)
        crop = self.crops.get((standardized_name or "").strip().upper())
        if crop is not None:
            text = crop.apply(text)
        return text

    def prompt_rules(self, language_name: str) -> List[str]:
        """Hard constraints for the oracle prompt, derived from the same table."""
        lines: List[str] = []
        for sub in self.generic:
            wrong = ", ".join(f"'{w}'" for w in sub.wrong)
            lines.append(
                f"When translating the word '{sub.source_term}' into {language_name}, you MUST use "
                f"'{sub.desired}'. Do NOT use {wrong} or any other word for {sub.source_term}. "
                "This is a strict and critical requirement."
            )
        if self.crops:
            lines.append(f"Crop names MUST be translated to these exact {language_name} terms:")
            for name, sub in self.crops.items():
                lines.append(f"- {name}: {sub.desired}")
        return lines


TELUGU_CORRECTIONS = LanguageCorrections(
    language="te",
    generic=(
        Substitution(desired="రాబడులు", wrong=("రాక",), source_term="ARRIVAL"),
    ),
    crops={
        "CHANA DAL": Substitution(
            desired="సెనగ పప్పు",
            wrong=("CHANA DAL", "CHANA", "GRAM", "సెనగ దాల్", "చెన దాల్", "శనగ పప్పు"),
        ),
        "TOOR DAL": Substitution(
            desired="కంది పప్పు",
            wrong=("TOOR DAL", "TOOR", "ARHAR", "TUR", "కంది దాల్", "టూర్ దాల్"),
        ),
        "URAD DAL": Substitution(
            desired="మినపప్పు",
            wrong=("URAD DAL", "URAD", "ఉరద్ దాల్"),
        ),
        "MOONG DAL": Substitution(
            desired="పెసర పప్పు",
            wrong=("MOONG DAL", "MOONG", "MUNG DAL", "MUNG", "మూంగ్ దాల్", "ముంగ్ దాల్"),
        ),
        "MASUR DAL": Substitution(
            desired="మసూర్ పప్పు",
            wrong=("MASUR DAL", "MASUR", "మసూర్ దాల్"),
        ),
        "MATAR": Substitution(
            desired="బటానీ పప్పు",
            wrong=("MATAR DAL", "MATAR", "బటానీ", "మటార్ దాల్"),
        ),
    },
)


CORRECTIONS: Dict[str, LanguageCorrections] = {
    TELUGU_CORRECTIONS.language: TELUGU_CORRECTIONS,
}


def apply_corrections(
    language: str,
    text: str,
    standardized_name: Optional[str] = None,
    corrections: Mapping[str, LanguageCorrections] = CORRECTIONS,
) -> str:
    """Apply the deterministic overrides defined for `language`; others pass through."""
    table = corrections.get((language or "").strip().lower())
    if table is None or not text:
        return text
    corrected = table.apply(text, standardized_name)
    if corrected != text:
        logging.getLogger(__name__).debug(
            "Corrected %s text for %s: %r -> %r",
            language,
            standardized_name,
            text[:50],
            corrected[:50],
        )
    return corrected
