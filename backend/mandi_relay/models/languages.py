from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class LanguageProfile:
    code: str
    name: str
    label: str
    banner: str
    category_separator: str


LANGUAGE_PROFILES: Dict[str, LanguageProfile] = {
    "en": LanguageProfile(
        code="en",
        name="English",
        label="ENGLISH",
        banner="*** ALL MARKET UPDATES (ENGLISH) ***",
        category_separator="\n\n===== CATEGORY SEPARATOR =====\n\n",
    ),
    "te": LanguageProfile(
        code="te",
        name="Telugu",
        label="TELUGU",
        banner="*** అన్ని మార్కెట్ అప్‌డేట్‌లు (తెలుగు) ***",
        category_separator="\n\n===== కేటగిరీ సెపరేటర్ =====\n\n",
    ),
}


def profile_for(code: str) -> LanguageProfile:
    code = (code or "").strip().lower()
    known = LANGUAGE_PROFILES.get(code)
    if known is not None:
        return known
    label = code.upper()
    return LanguageProfile(
        code=code,
        name=label,
        label=label,
        banner=f"*** ALL MARKET UPDATES ({label}) ***",
        category_separator="\n\n===== CATEGORY SEPARATOR =====\n\n",
    )
