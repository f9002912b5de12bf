from __future__ import annotations

from typing import List, Mapping, Sequence

from mandi_relay.models.languages import profile_for
from mandi_relay.processing.corrections import CORRECTIONS, LanguageCorrections
from mandi_relay.processing.formatting import MARKETING_PHRASES
from mandi_relay.processing.lexicon import LEXICON, Lexicon


EXTRACTION_PROMPT = """
You are an expert market data analyst for Indian agricultural commodities.
Analyze the WhatsApp message below, posted in a seller group, and extract every distinct crop offer.

For each offer:

1. Extraction (STRICT)
- Identify the crop name, prices, price changes, arrival quantities and the market/location.
- Different quality, origin or market qualifiers are DIFFERENT offers, even for the same crop
  (e.g. "Tur Sudan" and "Tur Mozambique Gajri"; "Sugar Kekri Market" and "Sugar Tonk Market").
- Put the qualifier in `extractedName` ("Tur Sudan", "Sugar Kekri Market") and keep it in every translation.

2. Standardization
- Map the BASE crop name (without qualifier) to exactly one of: {standardized_names}.
- If nothing matches exactly, pick the closest one.

3. Categorization
- Assign exactly one of these categories: {categories}.

4. Formatting of the English text (apply in this order)
- Keep every number (prices, quantities) and keep place names (state, district, city, village) unchanged.
- Remove lines that say NA, NAD, NO SALE, NO SALES, NOT AVAILABLE, NO RATE or NO TRADING.
- Remove "+0" and "(+0)" price changes.
- Convert KATTA to BAG at 2 KATTA = 1 BAG. Ranges convert both ends, rounding the lower end up and the
  upper end down ("100-200 KATTA" -> "50-100 BAG"; "101 KATTA" -> "51 BAG").
- Convert QUINTAL/QUINTALS to BAG at 1 QUINTAL = 2 BAG ("10-20 QUINTALS" -> "20-40 BAG").
- Remove phone numbers, e-mail addresses and marketing/contact phrases such as {marketing_phrases}.
- If a line starts with a market name followed by "MARKET", put the upper-case market name on its own
  line and the remaining details on the next line.
- Remove empty lines and extra spaces. Remove all emojis. Upper-case the whole text.

5. Translation
- Translate the final formatted English text into: {languages}.
{translation_rules}

Output format (STRICT)
Return ONE JSON array inside a single ```json block and nothing else. Each element:
- extractedName: crop name as written, including quality/origin/market
- standardizedName: one of the standardized names above
- category: one of the categories above
- details: object mapping each language code ({language_codes}) to the formatted, translated offer text

Example:
```json
[
  {{
    "extractedName": "TUR SUDAN",
    "standardizedName": "TOOR DAL",
    "category": "PULSES",
    "details": {{
      "en": "MUMBAI\\nTUR SUDAN: 6250-6300",
      "te": "ముంబై\\nకంది పప్పు సూడాన్: 6250-6300"
    }}
  }},
  {{
    "extractedName": "SUGAR KEKRI MARKET",
    "standardizedName": "SUGAR",
    "category": "SUGAR",
    "details": {{
      "en": "KEKRI\\nSUGAR: 6800-7200\\nARRIVAL: 1500-1800 BAG",
      "te": "కేక్రి\\nపంచదార: 6800-7200\\nరాబడులు: 1500-1800 సంచులు"
    }}
  }}
]
```

WhatsApp message to process:
```
{message}
```
"""


def _translation_rules(languages: Sequence[str], corrections: Mapping[str, LanguageCorrections]) -> str:
    lines: List[str] = []
    for code in languages:
        table = corrections.get(code)
        if table is None:
            continue
        name = profile_for(code).name
        lines.append(f"VERY IMPORTANT RULES FOR {name.upper()} ('{code}'):")
        lines.extend(f"  {rule}" for rule in table.prompt_rules(name))
    return "\n".join(lines)


def build_extraction_prompt(message: str,
                            languages: Sequence[str],
                            lexicon: Lexicon = LEXICON,
                            corrections: Mapping[str, LanguageCorrections] = CORRECTIONS) -> str:
    return EXTRACTION_PROMPT.format(
        standardized_names=", ".join(lexicon.standardized_names),
        categories=", ".join(lexicon.categories),
        marketing_phrases=", ".join(f'"{p}"' for p in MARKETING_PHRASES),
        languages=", ".join(f"'{c}' ({profile_for(c).name})" for c in languages),
        language_codes=", ".join(f"'{c}'" for c in languages),
        translation_rules=_translation_rules(languages, corrections),
        message=message,
    )
