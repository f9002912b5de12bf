from __future__ import annotations

import logging
import math
import re
from decimal import Decimal
from typing import Callable, List, Tuple


# 1) Lines carrying any of these markers are dropped entirely.
_NO_TRADE_RE = re.compile(
    r"\b(?:NA|NAD|NO\s*SALES?|NOT\s+AVAILABLE|NO\s+RATES?|NO\s+TRADING)\b",
    re.IGNORECASE,
)

# 2) "+0" / "(+0)" carry no information; "+05" and "+0.5" are real changes.
_ZERO_CHANGE_RE = re.compile(r"[ \t]*(?:\(\+0\)|\+0(?![\d.]))")

# 3) Unit conversion into BAG.
_NUMBER = r"(\d+(?:\.\d+)?)"
_KATTA_RANGE_RE = re.compile(
    rf"(?<![\d.]){_NUMBER}[ \t]*-[ \t]*{_NUMBER}[ \t]*KATTAS?\b", re.IGNORECASE
)
_KATTA_SINGLE_RE = re.compile(rf"(?<![\d.]){_NUMBER}[ \t]*KATTAS?\b", re.IGNORECASE)
_QUINTAL_RANGE_RE = re.compile(
    rf"(?<![\d.]){_NUMBER}[ \t]*-[ \t]*{_NUMBER}[ \t]*QUINTALS?\b", re.IGNORECASE
)
_QUINTAL_SINGLE_RE = re.compile(rf"(?<![\d.]){_NUMBER}[ \t]*QUINTALS?\b", re.IGNORECASE)

# 4) Contact details and seller boilerplate.
_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
_PHONE_RE = re.compile(r"(?<![\w+])(?:\+?\d{1,3}[-. \t]?)?\d{10}(?!\w)")
MARKETING_PHRASES: Tuple[str, ...] = (
    "CONTACT",
    "CALL",
    "DM",
    "WHATSAPP",
    "FOR DETAILS",
    "TRIAL OFFER",
    "FREE TRIAL",
    "INFORMATION IS INDICATIVE",
    "AS AGGREGATED BY MARKET SOURCES",
    "NAME/CITY FOR FREE TRIAL",
)
_MARKETING_RE = re.compile(
    r"(?<!\w)(?:"
    + "|".join(
        r"[ \t]+".join(re.escape(word) for word in phrase.split())
        for phrase in sorted(MARKETING_PHRASES, key=len, reverse=True)
    )
    + r")(?!\w)[ \t]*[:\-/]?[ \t\d\-/+]*",
    re.IGNORECASE,
)
_SECTION_HEADER_RE = re.compile(r"(?<!\w)(?:PULSES|OILSEEDS?|SPICES)[ \t]*:", re.IGNORECASE)

# 5) "KEKRI MARKET SUGAR 6800" -> "KEKRI" / "SUGAR 6800"
_MARKET_LINE_RE = re.compile(
    r"^[ \t]*(\w+(?:[ \t]+\w+)*?)[ \t]+MARKET\b[ \t]*[:\-]?[ \t]*(.*)$", re.IGNORECASE
)

# 7) Pictographs, dingbats, arrows, box drawing, flags, plus emoji joiners.
_EMOJI_RE = re.compile(
    "["
    "\U0001F600-\U0001F64F"
    "\U0001F300-\U0001F5FF"
    "\U0001F680-\U0001F6FF"
    "\U0001F1E0-\U0001F1FF"
    "\U0001F900-\U0001F9FF"
    "\U0001FA70-\U0001FAFF"
    "\u2600-\u26FF"
    "\u2700-\u27BF"
    "\u2190-\u21FF"
    "\u2300-\u23FF"
    "\u2500-\u25FF"
    "\u2B00-\u2BFF"
    "\u2934\u2935"
    "\uFE0F\u200D"
    "]"
)
_POINTING_ARROW = "\U0001F449"

_MAX_PASSES = 10


def _format_number(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")


def _katta_range(m: re.Match) -> str:
    low = math.ceil(Decimal(m.group(1)) / 2)
    high = math.floor(Decimal(m.group(2)) / 2)
    return f"{low}-{high} BAG"


def _katta_single(m: re.Match) -> str:
    return f"{math.ceil(Decimal(m.group(1)) / 2)} BAG"


def _quintal_range(m: re.Match) -> str:
    low = _format_number(Decimal(m.group(1)) * 2)
    high = _format_number(Decimal(m.group(2)) * 2)
    return f"{low}-{high} BAG"


def _quintal_single(m: re.Match) -> str:
    return f"{_format_number(Decimal(m.group(1)) * 2)} BAG"


def drop_no_trade_lines(text: str) -> str:
    return "\n".join(line for line in text.split("\n") if not _NO_TRADE_RE.search(line))


def remove_zero_changes(text: str) -> str:
    return _ZERO_CHANGE_RE.sub("", text)


def convert_units(text: str) -> str:
    """KATTA -> BAG at 2:1 (ceil low, floor high); QUINTAL -> BAG at 1:2."""
    text = _KATTA_RANGE_RE.sub(_katta_range, text)
    text = _KATTA_SINGLE_RE.sub(_katta_single, text)
    text = _QUINTAL_RANGE_RE.sub(_quintal_range, text)
    return _QUINTAL_SINGLE_RE.sub(_quintal_single, text)


def strip_contact_noise(text: str) -> str:
    text = _EMAIL_RE.sub("", text)
    text = _PHONE_RE.sub("", text)
    text = _MARKETING_RE.sub("", text)
    return _SECTION_HEADER_RE.sub("", text)


def _split_market_line(line: str) -> List[str]:
    out: List[str] = []
    rest = line
    while True:
        m = _MARKET_LINE_RE.match(rest)
        if not m:
            out.append(rest)
            return out
        out.append(m.group(1).upper())
        rest = m.group(2).strip()
        if not rest:
            return out


def layout_market_names(text: str) -> str:
    lines: List[str] = []
    for line in text.split("\n"):
        lines.extend(_split_market_line(line))
    return "\n".join(lines)


def retrim(text: str) -> str:
    lines = (re.sub(r"[ \t]{2,}", " ", line).strip() for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


def strip_emoji(text: str) -> str:
    return _EMOJI_RE.sub("", text).replace(_POINTING_ARROW, "")


def upper_case(text: str) -> str:
    return text.upper()


# Order matters: later rules assume the cleanup done by earlier ones.
FORMATTING_RULES: Tuple[Callable[[str], str], ...] = (
    drop_no_trade_lines,
    remove_zero_changes,
    convert_units,
    strip_contact_noise,
    layout_market_names,
    retrim,
    strip_emoji,
    upper_case,
)


def _apply_rules(text: str) -> str:
    for rule in FORMATTING_RULES:
        text = rule(text)
    return text


def format_offer_text(text: str) -> str:
    """
    Apply the offer formatting rules in order until the text stops changing.

    One ordered pass is not stable on its own: stripping an emoji that opens a
    line leaves whitespace the re-trim already ran past, and removing a phrase
    can expose a "<n> KATTA" pair. Repeating the pass to a fixed point makes
    the function idempotent.
    """
    current = (text or "").replace("\r\n", "\n").replace("\r", "\n")
    for _ in range(_MAX_PASSES):
        formatted = _apply_rules(current)
        if formatted == current:
            return formatted
        current = formatted
    logging.getLogger(__name__).warning(
        "Offer text still changing after %d formatting passes", _MAX_PASSES
    )
    return current
