import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("ENABLE_FILE_LOGS", "0")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config.registry import EXTRACTOR_KEY, bind_model, unbind_model
from intake_flow import FlowState, build_index, load_index, parse_schema

SAMPLE_SCHEMA = ROOT / "config" / "flows" / "solar_onboarding.json"


def branching_document():
    """Small flow: text, choice with a two-field sub-flow, trailing number."""
    return {
        "id": "demo",
        "flow": [
            {"id": "full_name", "type": "text", "order": 1, "validation": {"minLength": 2}},
            {
                "id": "q1",
                "type": "choice",
                "order": 2,
                "options": [{"value": "yes"}, {"value": "no"}],
                "optionFlows": {
                    "yes": [
                        {"id": "b1", "type": "text", "order": "2.1"},
                        {"id": "b2", "type": "text", "order": "2.2", "required": False},
                    ]
                },
            },
            {"id": "age", "type": "number", "order": 3, "validation": {"min": 18, "max": 120}},
        ],
        "completion": {"message": "Thanks {name}!"},
    }


def nested_document():
    """A choice whose sub-flow holds another choice with its own sub-flow."""
    return {
        "id": "nested",
        "flow": [
            {"id": "name", "type": "text", "order": 1},
            {
                "id": "trip",
                "type": "choice",
                "order": 2,
                "options": [{"value": "yes"}, {"value": "no"}],
                "optionFlows": {
                    "yes": [
                        {
                            "id": "mode",
                            "type": "choice",
                            "order": "2.1",
                            "options": [{"value": "car"}, {"value": "train"}],
                            "optionFlows": {"car": [{"id": "plate", "type": "text", "order": "2.1.1"}]},
                        },
                        {"id": "nights", "type": "number", "order": "2.2"},
                        {"id": "trip_note", "type": "text", "order": "2.3", "required": False},
                    ]
                },
            },
            {"id": "age", "type": "number", "order": 3},
        ],
    }


@pytest.fixture
def branching_doc():
    return branching_document()


@pytest.fixture
def sample_schema_path():
    return SAMPLE_SCHEMA


@pytest.fixture
def branching_index():
    return build_index(parse_schema(branching_document()))


@pytest.fixture
def nested_index():
    return build_index(parse_schema(nested_document()))


@pytest.fixture
def solar_index():
    return load_index(SAMPLE_SCHEMA)


@pytest.fixture
def empty_state():
    return FlowState()


@pytest.fixture
def fake_extractor():
    """Bind an extractor that echoes a queue of canned extractions."""

    calls = []
    queue = []

    def extractor(**kwargs):
        calls.append(kwargs)
        if queue:
            return queue.pop(0)
        return {"extracted": {}}

    bind_model(EXTRACTOR_KEY, extractor)
    try:
        yield queue, calls
    finally:
        unbind_model(EXTRACTOR_KEY)
