from datetime import datetime, timezone

import pytest

from intake_flow import (
    AnswerValidationError,
    FlowState,
    SchemaLookupError,
    build_index,
    build_profile,
    completion_percentage,
    parse_schema,
    reachable_fields,
    store_answer,
)

FIXED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _clock():
    return FIXED


def _index(flow):
    return build_index(parse_schema({"id": "t", "flow": flow}))


def test_accepts_and_records_with_clock(branching_index, empty_state):
    result = store_answer(branching_index, empty_state, "full_name", "  Jo  ", now=_clock)
    assert result.accepted
    assert result.completed_ids == ["full_name"]
    record = result.flow_state.collected_answers[-1]
    assert (record.id, record.question_id, record.value, record.timestamp) == ("full_name", "full_name", "Jo", FIXED)
    assert "full_name" in result.flow_state.completed_fields
    # the caller's state is never modified in place
    assert empty_state.collected_answers == []


def test_unknown_field_is_rejected_and_state_unchanged(branching_index, empty_state):
    result = store_answer(branching_index, empty_state, "nope", "x")
    assert not result.accepted
    assert result.error == "unknown_field"
    assert result.flow_state == empty_state
    with pytest.raises(SchemaLookupError):
        result.raise_for_error()


def test_unentered_branch_field_is_not_reachable(branching_index, empty_state):
    result = store_answer(branching_index, empty_state, "b1", "x")
    assert result.error == "unknown_field"
    assert "b1" not in {f.id for f in reachable_fields(branching_index, empty_state)}


def test_validation_failures_carry_reasons(branching_index, empty_state):
    short = store_answer(branching_index, empty_state, "full_name", "J")
    assert not short.accepted
    assert short.error == "min_length"
    assert short.reasons == ["min_length"]
    assert short.flow_state == empty_state

    young = store_answer(branching_index, empty_state, "age", "12")
    assert young.error == "minimum"
    with pytest.raises(AnswerValidationError) as excinfo:
        young.raise_for_error()
    assert excinfo.value.reasons == ["minimum"]

    bad_option = store_answer(branching_index, empty_state, "q1", "maybe")
    assert bad_option.error == "invalid_option"

    blank = store_answer(branching_index, empty_state, "full_name", "   ")
    assert blank.error == "required"

    word = store_answer(branching_index, empty_state, "age", "old")
    assert word.error == "not_a_number"


def test_error_message_from_schema_rules():
    index = _index(
        [{"id": "pin", "type": "text", "validation": {"pattern": "^[0-9]{6}$", "errorMessage": "Six digits"}}]
    )
    result = store_answer(index, FlowState(), "pin", "12ab")
    assert result.error == "pattern"
    assert result.message == "Six digits"


def test_values_are_normalized(branching_index, empty_state):
    choice = store_answer(branching_index, empty_state, "q1", " YES ")
    assert choice.flow_state.collected_answers[-1].value == "yes"
    number = store_answer(branching_index, empty_state, "age", "42")
    assert number.flow_state.collected_answers[-1].value == 42


def test_idempotent_reanswer(branching_index, empty_state):
    state = store_answer(branching_index, empty_state, "full_name", "Jo").flow_state
    percent = completion_percentage(branching_index, state)
    again = store_answer(branching_index, state, "full_name", "Jo").flow_state
    assert again.completed_fields == state.completed_fields
    assert completion_percentage(branching_index, again) == percent
    assert len(again.collected_answers) == 2


def test_last_write_wins(branching_index, empty_state):
    state = store_answer(branching_index, empty_state, "full_name", "Alice").flow_state
    state = store_answer(branching_index, state, "full_name", "Bob").flow_state
    assert build_profile(branching_index, state.collected_answers)["full_name"] == "Bob"


def test_sub_flow_entry_and_exit(branching_index, empty_state):
    entered = store_answer(branching_index, empty_state, "q1", "yes")
    assert entered.new_sub_flow == "q1:yes"
    assert entered.flow_state.active_sub_flow == "q1:yes"

    # b1 is the branch's only required field
    state = store_answer(branching_index, entered.flow_state, "b1", "x").flow_state
    assert state.active_sub_flow is None
    state = store_answer(branching_index, state, "b2", "y").flow_state
    assert state.active_sub_flow is None

    # re-answering the finished choice neither reopens nor reports its branch
    again = store_answer(branching_index, state, "q1", "yes")
    assert again.new_sub_flow is None
    assert again.flow_state.active_sub_flow is None


def test_choice_whose_branch_has_no_required_field_opens_nothing():
    index = _index(
        [
            {
                "id": "pets",
                "type": "choice",
                "options": [{"value": "yes"}, {"value": "no"}],
                "optionFlows": {"yes": [{"id": "pet_names", "type": "text", "required": False}]},
            }
        ]
    )
    result = store_answer(index, FlowState(), "pets", "yes")
    assert result.new_sub_flow is None
    assert result.flow_state.active_sub_flow is None
    assert "pet_names" in {f.id for f in reachable_fields(index, result.flow_state)}


def test_nested_choice_sub_flows(nested_index):
    state = store_answer(nested_index, FlowState(), "trip", "yes").flow_state
    inner = store_answer(nested_index, state, "mode", "car")
    assert inner.new_sub_flow == "mode:car"
    assert inner.flow_state.active_sub_flow == "mode:car"

    back = store_answer(nested_index, inner.flow_state, "plate", "AB12")
    assert back.new_sub_flow is None
    assert back.flow_state.active_sub_flow == "trip:yes"

    # a branchless option on the inner choice hands back to the outer sub-flow
    switched = store_answer(nested_index, inner.flow_state, "mode", "train")
    assert switched.new_sub_flow is None
    assert switched.flow_state.active_sub_flow == "trip:yes"
    assert "plate" not in {f.id for f in reachable_fields(nested_index, switched.flow_state)}

    done = store_answer(nested_index, back.flow_state, "nights", 2)
    assert done.flow_state.active_sub_flow is None


def test_switching_option_closes_branch(branching_index, empty_state):
    state = store_answer(branching_index, empty_state, "q1", "yes").flow_state
    switched = store_answer(branching_index, state, "q1", "no")
    assert switched.new_sub_flow is None
    assert switched.flow_state.active_sub_flow is None
    assert "b1" not in {f.id for f in reachable_fields(branching_index, switched.flow_state)}


def _address_index():
    return _index(
        [
            {
                "id": "address",
                "type": "form",
                "children": [
                    {"id": "street", "type": "text", "validation": {"minLength": 3}},
                    {"id": "pin", "type": "text", "validation": {"pattern": "^[0-9]{6}$"}},
                    {"id": "country", "type": "text", "required": False},
                ],
            }
        ]
    )


def test_form_submission_marks_children_and_parent():
    index = _address_index()
    result = store_answer(index, FlowState(), "address", {"street": "Main", "pin": "560001"})
    assert result.accepted
    assert set(result.completed_ids) == {"street", "pin", "address"}
    assert {a.id for a in result.flow_state.collected_answers} == {"street", "pin"}


def test_form_submission_rejects_invalid_children():
    index = _address_index()
    result = store_answer(index, FlowState(), "address", {"street": "Main", "pin": "12"})
    assert not result.accepted
    assert result.error == "invalid_form"
    assert result.reasons == {"pin": ["pattern"]}
    assert result.flow_state.collected_answers == []


def test_form_child_answered_directly_completes_parent():
    index = _address_index()
    state = store_answer(index, FlowState(), "street", "Main").flow_state
    result = store_answer(index, state, "pin", "560001")
    assert result.completed_ids == ["pin", "address"]


def test_form_rejects_non_mapping_and_empty():
    index = _address_index()
    assert store_answer(index, FlowState(), "address", "Main street").error == "invalid_form"
    assert store_answer(index, FlowState(), "address", {}).error == "required"


def _docs_index(**files):
    return _index(
        [
            {
                "id": "docs",
                "type": "files",
                "children": [
                    {"id": "front", "type": "file", "maxFiles": 2},
                    {"id": "back", "type": "file", "required": False},
                ],
                **files,
            }
        ]
    )


def test_files_submission():
    index = _docs_index()
    result = store_answer(index, FlowState(), "docs", {"front": ["a", "b"]})
    assert result.accepted
    assert "docs" in result.completed_ids

    too_many = store_answer(index, FlowState(), "docs", {"front": ["a", "b", "c"]})
    assert too_many.error == "invalid_files"
    assert too_many.reasons == {"front": ["max_files"]}

    bad_ref = store_answer(index, FlowState(), "docs", {"front": [1]})
    assert bad_ref.reasons == {"front": ["invalid_reference"]}

    ambiguous = store_answer(index, FlowState(), "docs", ["a"])
    assert ambiguous.error == "invalid_files"


def test_optional_files_can_be_skipped():
    index = _docs_index(required=False)
    result = store_answer(index, FlowState(), "docs", {})
    assert result.accepted
    assert "docs" in result.flow_state.completed_fields

    partial = store_answer(index, FlowState(), "docs", {"back": ["b1"]})
    assert partial.accepted
    assert "docs" not in partial.flow_state.completed_fields
