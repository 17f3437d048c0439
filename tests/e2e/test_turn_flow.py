from services.sessions import SessionStore
from services.turns import run_turn


def test_full_conversation(solar_index, fake_extractor):
    queue, calls = fake_extractor
    store = SessionStore()
    session_id = store.create(solar_index.schema.id).session_id

    def turn(**kwargs):
        with store.lock(session_id) as session:
            result = run_turn(solar_index, session, **kwargs)
            store.save(session)
        return result

    queue.append({"extracted": {"full_name": "Asha Rao"}, "reply": "Thanks Asha."})
    assert turn(user_msg="My name is Asha Rao").question_id == "phone"
    assert turn(answers={"phone": "+919876543210"}).question_id == "panel_count"
    assert turn(answers={"panel_count": "4"}).question_id == "email"
    assert turn(answers={"email": "asha@example.com"}).question_id == "address"

    address = turn(answers={"address": {"address_line": "12 MG Road", "pin_code": "560001"}})
    assert address.question_id == "nets_interest"

    queue.append({"extracted": {"nets_interest": "Yes, I'm interested"}})
    nets = turn(user_msg="yes please add nets")
    assert nets.new_sub_flow == "nets_interest:yes"
    assert nets.question_id == "net_type"
    assert nets.completion_percentage == 53
    assert [o["value"] for o in nets.ui_hint.options] == ["bird", "debris"]

    # net_notes is optional, so the branch closes once net_type is answered
    typed = turn(answers={"net_type": "bird"})
    assert typed.accepted
    assert typed.new_sub_flow is None
    assert typed.question_id == "attachments"
    assert store.get(session_id).flow_state.active_sub_flow is None

    done = turn(answers={"attachments": {"site_photos": ["att-1"]}})
    assert done.status == "complete"
    assert done.question_id is None
    assert done.ui_hint is None
    assert done.completion_percentage == 100
    assert done.message.startswith("Thank you Asha Rao!")
    assert done.profile == {
        "full_name": "Asha Rao",
        "phone": "+919876543210",
        "panel_count": 4,
        "email": "asha@example.com",
        "address": {"address_line": "12 MG Road", "pin_code": "560001"},
        "nets_interest": "yes",
        "net_type": "bird",
    }
    assert len(calls) == 2

    again = turn(user_msg="anything else?")
    assert again.status == "complete"
    assert len(calls) == 2


def test_declined_branch_and_skipped_attachments(solar_index):
    store = SessionStore()
    session = store.create(solar_index.schema.id)
    for answers in (
        {"full_name": "Asha Rao"},
        {"phone": "+919876543210"},
        {"panel_count": 2},
        {"email": "asha@example.com"},
        {"address": {"address_line": "12 MG Road", "pin_code": "560001"}},
        {"nets_interest": "no"},
    ):
        assert run_turn(solar_index, session, answers=answers).accepted
    result = run_turn(solar_index, session, answers={"attachments": ""})
    assert result.status == "complete"
    assert result.profile["nets_interest"] == "no"
    assert "net_type" not in result.profile
