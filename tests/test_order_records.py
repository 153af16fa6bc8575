from datetime import date

import pytest

from services import memory, order_records
from services.order_state import (
    EDIT,
    FINISH,
    INIT,
    SKIP,
    START,
    VACATION,
    InvalidTransition,
    OrderState,
)


def _assert_slots_in_order(record):
    if record.today is not None:
        assert record.yesterday is not None
    if record.conflicts is not None:
        assert record.today is not None


def test_create_if_needed_is_idempotent(make_user, channel, day):
    alice = make_user("U1", "Alice")
    first = order_records.create_if_needed(alice, channel.id, day)
    second = order_records.create_if_needed(alice, channel.id, day)

    assert first == second
    assert first.state is OrderState.IDLE
    assert first.sequence_position == 1
    assert first.auto_skipped_times == 0
    assert len(order_records.records_for_channel(channel.id, day)) == 1


def test_new_day_gets_new_record(make_user, channel, day):
    alice = make_user("U1", "Alice")
    monday = order_records.create_if_needed(alice, channel.id, day)
    tuesday = order_records.create_if_needed(alice, channel.id, date(2024, 3, 5))
    assert monday.id != tuesday.id
    assert order_records.get_record(alice.id, channel.id, date(2024, 3, 5)) == tuesday


def test_bot_never_gets_a_record(make_user, channel, day):
    robot = make_user("B1", "Robot", is_bot=True)
    assert order_records.create_if_needed(robot, channel.id, day) is None
    assert order_records.get_record(robot.id, channel.id, day) is None


def test_fire_walks_the_happy_path(make_record):
    record = make_record("U1")
    record = order_records.fire(record, INIT)
    assert record.state is OrderState.ACTIVE and record.in_progress
    record = order_records.fire(record, START)
    assert record.state is OrderState.ANSWERING


def test_invalid_transition_mutates_nothing(make_record):
    record = make_record("U1", OrderState.ACTIVE)
    with pytest.raises(InvalidTransition):
        order_records.fire(record, FINISH)
    assert order_records.get_record_by_id(record.id) == record


def test_stale_snapshot_is_rejected_by_the_store(make_record):
    record = make_record("U1", OrderState.ACTIVE)
    order_records.fire(record, START)

    # `record` still says active; the row says answering.
    with pytest.raises(InvalidTransition) as exc:
        order_records.fire(record, VACATION)
    assert exc.value.state is OrderState.ANSWERING
    assert order_records.get_record_by_id(record.id).state is OrderState.ANSWERING


def test_three_answers_finish_the_order(make_record):
    record = make_record("U1", OrderState.ANSWERING)
    for answer in ("Korma", "Coconut", "Popadoms"):
        record = order_records.process_answer(record, answer)
        _assert_slots_in_order(record)

    assert record.state is OrderState.DONE
    assert record.answers == ("Korma", "Coconut", "Popadoms")
    assert record.completed
    assert record.current_question is None


def test_answer_fills_first_open_slot_after_delete(make_record):
    record = make_record("U1", OrderState.DONE)
    record = order_records.fire(record, EDIT)
    record = order_records.delete_answer(record, 2)
    assert record.state is OrderState.ANSWERING

    record = order_records.process_answer(record, "Plain")
    assert record.today == "Plain"
    assert record.state is OrderState.DONE


def test_answer_is_noop_when_all_slots_set(make_record):
    record = make_record("U1", OrderState.DONE)
    record = order_records.fire(record, EDIT)
    after = order_records.process_answer(record, "Extra")
    assert after == record


def test_answer_resolves_mentions(make_record, make_user):
    make_user("U2", "Bob")
    record = make_record("U1", OrderState.ANSWERING)
    record = order_records.process_answer(record, "same as <@U2> and <@U2>, ask <@U9>")
    assert record.yesterday == "same as Bob and Bob, ask User Not Available"


def test_failed_finish_rolls_back_the_answer(make_record):
    record = make_record("U1", OrderState.ACTIVE)
    record = order_records.process_answer(record, "Korma")
    record = order_records.process_answer(record, "Plain")
    with pytest.raises(InvalidTransition):
        order_records.process_answer(record, "Naan")

    stored = order_records.get_record_by_id(record.id)
    assert stored.conflicts is None
    assert stored.state is OrderState.ACTIVE


def test_delete_third_answer_keeps_done(make_record):
    record = make_record("U1", OrderState.DONE)
    record = order_records.delete_answer(record, 3)
    assert record.state is OrderState.DONE
    assert record.answers == ("Chicken tikka", "Pulau", None)
    _assert_slots_in_order(record)


@pytest.mark.parametrize("slot", [0, 4, None, "1"])
def test_delete_rejects_unknown_slot(make_record, slot):
    record = make_record("U1", OrderState.DONE)
    with pytest.raises(ValueError):
        order_records.delete_answer(record, slot)


def test_skip_moves_to_back_of_queue(make_record, channel, day):
    alice = make_record("U1", OrderState.ACTIVE)
    make_record("U2")
    make_record("U3")
    before = order_records.max_sequence_position(channel.id, day)

    alice = order_records.fire(alice, SKIP)
    assert alice.state is OrderState.IDLE
    assert alice.sequence_position == before + 1
    assert [r.user_id for r in order_records.records_for_channel(channel.id, day)][-1] == alice.user_id


def test_records_for_channel_filters_states(make_record, channel, day):
    make_record("U1", OrderState.ACTIVE)
    make_record("U2")
    make_record("U3", OrderState.VACATION)
    idle = order_records.records_for_channel(channel.id, day, [OrderState.IDLE])
    assert len(idle) == 1
    assert channel.pending_participants(day) == {idle[0].user_id}


def test_auto_skip_counter_is_informational(make_record):
    record = make_record("U1")
    con = memory.get_conn()
    try:
        con.execute("UPDATE order_records SET auto_skipped_times = 3 WHERE id = ?", (record.id,))
        con.commit()
    finally:
        con.close()
    record = order_records.get_record_by_id(record.id)
    assert record.auto_skip_exhausted
    assert order_records.fire(record, INIT).state is OrderState.ACTIVE
