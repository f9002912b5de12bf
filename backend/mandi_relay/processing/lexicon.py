from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional


# Category -> standardized crop -> aliases seen in seller groups.
CROP_CATEGORIES_AND_STANDARDIZATION: Dict[str, Dict[str, List[str]]] = {
    "PULSES": {
        "CHANA DAL": ["CHANA", "CHANA DAL", "GRAM", "SENAGA PAPPU"],
        "TOOR DAL": ["TOOR", "TOOR DAL", "ARHAR", "TUR", "KANDI PAPPU", "KANDULU"],
        "URAD DAL": ["URAD", "URAD DAL", "MINUMULU", "MINAPAPPU"],
        "MOONG DAL": ["MOONG", "MOONG DAL", "MUNG", "MUNG DAL", "PESALU", "PESARA PAPPU"],
        "MASUR DAL": ["MASUR", "MASUR DAL"],
        "MATAR": ["MATAR", "MATAR DAL", "BATANI", "BATANI PAPPU"],
    },
    "SPICES": {
        "TURMERIC": ["TURMERIC", "HALDI"],
        "DHANIA": ["DHANIA", "CORIANDER"],
        "CHILLI": ["CHILLI", "CHILLY", "CHILI", "MIRCHI"],
        "JEERA": ["JEERA", "CUMIN"],
        "SAUNF": ["SAUNF", "FENNEL"],
        "METHI": ["METHI", "FENUGREEK"],
        "KALONJI": ["KALONJI", "BLACK CUMIN"],
        "AJWAIN": ["AJWAIN", "CAROM SEEDS"],
        "BLACK PEPPER": ["BLACK PEPPER", "KALI MIRCH"],
    },
    "OILS": {
        "COTTON OIL": ["COTTON", "COTTON OIL"],
        "COTTON KHAL": ["COTTON KHAL"],
        "RICE BRAN OIL": ["RICE BRAN", "RICE BRAN OIL"],
        "GN SEED OIL": ["GN SEED", "GROUNDNUT SEED", "GNUT SEED"],
        "GROUNDNUT OIL": ["GROUNDNUT", "GROUNDNUT OIL", "PALLI NUNE"],
        "SESAME OIL": ["SESAME", "SESAME OIL", "TIL OIL"],
        "CASTOR OIL": ["CASTOR", "CASTOR OIL"],
        "KANDLA OIL": ["KANDLA", "KANDLA OIL"],
        "SOYA OIL": ["SOYA", "SOYABEAN", "SOYA OIL"],
        "PALM OIL": ["PALM", "PALM OIL"],
        "VANASPATI GHEE": ["VANASPATI", "VANASPATI GHEE"],
        "MUSTARD OIL": ["MUSTARD", "MUSTARD OIL", "SARSON"],
        "ADANI WILMAR": ["ADANI WILMAR", "ADANI"],
    },
    "SUGAR": {
        "SUGAR": ["SUGAR", "CHINI"],
        "JAGGERY": ["JAGGERY", "GUD"],
    },
    "KIRANA": {
        "KIRANA": ["KIRANA", "GROCERY"],
    },
}


@dataclass(frozen=True)
class LexiconEntry:
    standardized_name: str
    category: str


def _normalize_token(token: str) -> str:
    return re.sub(r"\s+", " ", (token or "").strip()).upper()


class Lexicon:
    """Flat, read-only alias lookup compiled once from the nested crop table.

    Aliases are upper-cased on the way in and must be unique across the whole
    table. A duplicate is a configuration defect: it is logged and the later
    entry wins.
    """

    def __init__(self, table: Mapping[str, Mapping[str, List[str]]]) -> None:
        logger = logging.getLogger(__name__)
        aliases: Dict[str, LexiconEntry] = {}
        names: List[str] = []
        categories: List[str] = []
        for category, crops in table.items():
            cat = _normalize_token(category)
            categories.append(cat)
            for standardized_name, alias_list in crops.items():
                std = _normalize_token(standardized_name)
                names.append(std)
                for alias in alias_list:
                    key = _normalize_token(alias)
                    previous = aliases.get(key)
                    if previous is not None and previous != LexiconEntry(std, cat):
                        logger.warning(
                            "Duplicate crop alias %r: %s/%s overrides %s/%s",
                            key,
                            cat,
                            std,
                            previous.category,
                            previous.standardized_name,
                        )
                    aliases[key] = LexiconEntry(std, cat)
        self._aliases: Mapping[str, LexiconEntry] = MappingProxyType(aliases)
        self._names = tuple(names)
        self._categories = tuple(categories)
        self._max_alias_words = max((len(a.split(" ")) for a in aliases), default=0)

    @property
    def standardized_names(self) -> tuple:
        return self._names

    @property
    def categories(self) -> tuple:
        return self._categories

    def __len__(self) -> int:
        return len(self._aliases)

    def resolve(self, token: str) -> Optional[LexiconEntry]:
        """Case-insensitive exact alias lookup. No fuzzy matching."""
        return self._aliases.get(_normalize_token(token))

    def resolve_leading(self, text: str) -> Optional[LexiconEntry]:
        """Resolve the longest run of leading words that is a known alias.

        "TUR SUDAN" -> TOOR DAL, "RICE BRAN OIL KAKINADA" -> RICE BRAN OIL.
        """
        words = _normalize_token(text).split(" ")
        for n in range(min(len(words), self._max_alias_words), 0, -1):
            entry = self._aliases.get(" ".join(words[:n]))
            if entry is not None:
                return entry
        return None


LEXICON = Lexicon(CROP_CATEGORIES_AND_STANDARDIZATION)
