import random

import pytest

from mandi_relay.processing.formatting import (
    convert_units,
    drop_no_trade_lines,
    format_offer_text,
    layout_market_names,
    remove_zero_changes,
    strip_contact_noise,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("100-200 KATTA", "50-100 BAG"),
        ("101 KATTA", "51 BAG"),
        ("50 QUINTAL", "100 BAG"),
        ("10-20 QUINTALS", "20-40 BAG"),
        ("101-203 kattas", "51-101 BAG"),
        ("2.5 QUINTAL", "5 BAG"),
    ],
)
def test_unit_conversion(raw, expected):
    assert format_offer_text(raw) == expected


def test_unit_conversion_keeps_surrounding_text():
    assert convert_units("ARRIVAL: 3000 KATTA, PRICE 6200") == "ARRIVAL: 1500 BAG, PRICE 6200"


def test_noise_lines_are_dropped():
    raw = "TUR 6200-6300\nNA\nMOONG NO SALES\nURAD: NOT AVAILABLE\nCHANA 5500"
    assert format_offer_text(raw) == "TUR 6200-6300\nCHANA 5500"


def test_noise_markers_match_whole_words_only():
    # CHANA / NADIAD contain "NA" / "NAD" but are real offers
    raw = "CHANA 5500\nNADIAD 6100"
    assert drop_no_trade_lines(raw) == raw


def test_zero_change_marker_removed():
    assert format_offer_text("TUR 6200 (+0)\nCHANA 5500 +0") == "TUR 6200\nCHANA 5500"


def test_non_zero_changes_survive():
    assert remove_zero_changes("TUR 6200 +05\nCHANA 5500 +0.5") == "TUR 6200 +05\nCHANA 5500 +0.5"


def test_contact_noise_stripped():
    raw = "TUR 6200\nCONTACT: +91 9876543210\nmail trader@mandi.in\nFOR DETAILS CALL 9123456789"
    assert format_offer_text(raw) == "TUR 6200\nMAIL"


def test_phone_removal_does_not_cross_lines():
    raw = "TUR 6200\n9876543210"
    assert strip_contact_noise(raw) == "TUR 6200\n"


def test_market_name_moves_to_own_line():
    assert layout_market_names("KEKRI MARKET SUGAR 6800-7200") == "KEKRI\nSUGAR 6800-7200"
    assert format_offer_text("Tonk market: sugar 6750") == "TONK\nSUGAR 6750"


def test_emoji_and_spacing_cleaned():
    raw = "\U0001F33E  Tur   Sudan \U0001F449 6250-6300 ✅\n\n\n  chana 5500  "
    assert format_offer_text(raw) == "TUR SUDAN 6250-6300\nCHANA 5500"


def test_emoji_split_unit_converts_on_later_pass():
    assert format_offer_text("100\U0001F33EKATTA") == "50 BAG"


@pytest.mark.parametrize(
    "raw",
    [
        "\U0001F33E TUR 6200",
        "100\U0001F33EKATTA",
        "KEKRI MARKET SUGAR MARKET 6800 (+0)\nNA",
        "CALL 200 KATTA",
        "Indore  market:\U0001F447\nchana 5500 +0\r\n\r\nCONTACT 9876543210",
        "",
    ],
)
def test_formatting_is_idempotent(raw):
    once = format_offer_text(raw)
    assert format_offer_text(once) == once


TOKENS = [
    "TUR", "chana", "KATTA", "kattas", "QUINTAL", "QUINTALS", "MARKET", "market:", "NA", "NO SALES",
    "NOT AVAILABLE", "(+0)", "+0", "+05", "0", "100", "2.5", "6200-6300", "-", ":", ",", "CONTACT",
    "CALL", "FOR DETAILS", "9876543210", "+91", "trader@mandi.in", "\U0001F33E", "\U0001F449", "\u2705",
    "\u0c30\u0c3e\u0c15", "\u0c15\u0c02\u0c26\u0c3f", " ", "  ", "\n", "\n\n", "\r\n", "\t",
]


@pytest.mark.parametrize("seed", range(200))
def test_formatting_is_idempotent_on_generated_text(seed):
    rng = random.Random(seed)
    parts = []
    for _ in range(rng.randint(1, 25)):
        parts.append(rng.choice(TOKENS))
        parts.append(rng.choice(["", " ", "", "\n"]))
    raw = "".join(parts)
    once = format_offer_text(raw)
    assert format_offer_text(once) == once, raw


def test_output_is_upper_case():
    assert format_offer_text("jeera unjha 21000") == "JEERA UNJHA 21000"
