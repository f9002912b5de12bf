import os
import sys

import pytest


# Ensure backend package root is on sys.path for `import mandi_relay.*`
BACKEND_ROOT = os.path.dirname(os.path.dirname(__file__))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)


@pytest.fixture
def routing_data():
    """Raw routing file contents shared by router and pipeline tests."""
    return {
        "sourceChannels": ["seller-1@g.us", "seller-2@g.us"],
        "targetLanguages": ["en", "te"],
        "routes": {
            "PULSES": {"en": "pulses-en@g.us", "te": "pulses-te@g.us"},
            "SPICES": {"en": "spices-en@g.us", "te": "spices-te@g.us"},
        },
        "broadcastChannel": "all@g.us",
    }


@pytest.fixture
def routing(routing_data):
    from mandi_relay.models.schemas import RoutingConfig

    return RoutingConfig.model_validate(routing_data)
