import json
import logging

import pytest

from mandi_relay.config import load_routing_config, mask
from mandi_relay.processing.lexicon import Lexicon


def _write(tmp_path, data):
    path = tmp_path / "routing.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_routing_file_is_normalized(tmp_path, routing_data):
    routing_data["routes"] = {" pulses ": {"EN": " pulses-en@g.us ", "te": ""}}
    routing_data["targetLanguages"] = ["EN", "te", "en"]
    routing = load_routing_config(_write(tmp_path, routing_data))
    assert routing.routes == {"PULSES": {"en": "pulses-en@g.us"}}
    assert routing.target_languages == ["en", "te"]
    assert routing.route_for("pulses", "en") == "pulses-en@g.us"
    assert routing.languages_for("SPICES") == []
    assert routing.is_source("seller-1@g.us")


def test_routing_defects_are_logged(tmp_path, routing_data, caplog):
    routing_data["routes"]["SNACKS"] = {"en": "snacks@g.us"}
    lexicon = Lexicon({"PULSES": {"TOOR DAL": ["TUR"]}, "SUGAR": {"SUGAR": ["SUGAR"]}})
    with caplog.at_level(logging.WARNING):
        load_routing_config(_write(tmp_path, routing_data), lexicon=lexicon)
    messages = [r.getMessage() for r in caplog.records]
    assert "No destination channels configured for category SUGAR" in messages
    assert "Routing entry for unknown category SNACKS" in messages


@pytest.mark.parametrize(
    "content",
    ["{not json", json.dumps({"routes": ["PULSES"]}), json.dumps({"targetLanguages": []})],
)
def test_bad_routing_file_fails_startup(tmp_path, content):
    path = tmp_path / "routing.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(RuntimeError):
        load_routing_config(str(path))


def test_missing_routing_file_fails_startup(tmp_path):
    with pytest.raises(RuntimeError):
        load_routing_config(str(tmp_path / "absent.json"))


def test_mask_hides_secrets():
    assert mask(None) == "<unset>"
    assert mask("abc") == "***"
    assert mask("sk-1234567890") == "sk-***90"
