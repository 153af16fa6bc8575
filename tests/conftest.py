from datetime import date

import pytest

from services import channels, directory, memory, order_records
from services.order_state import INIT, NOT_AVAILABLE, START, VACATION, OrderState

ORDER_DAY = date(2024, 3, 4)

_PATHS = {
    OrderState.IDLE: (),
    OrderState.ACTIVE: (INIT,),
    OrderState.ANSWERING: (INIT, START),
    OrderState.DONE: (INIT, START),
    OrderState.NOT_AVAILABLE: (INIT, NOT_AVAILABLE),
    OrderState.VACATION: (INIT, VACATION),
}


@pytest.fixture(autouse=True)
def setup_db(tmp_path, monkeypatch):
    monkeypatch.setattr(memory, "DB_PATH", tmp_path / "test_standup.db")
    memory.init_db()
    yield


@pytest.fixture
def day():
    return ORDER_DAY


@pytest.fixture
def outbox():
    return []


@pytest.fixture
def channel(outbox):
    return channels.get_or_create_channel("C1", "curry-club", sender=outbox.append)


@pytest.fixture
def make_user():
    def _make(handle, name=None, **flags):
        return directory.upsert_user(handle, name or handle, **flags)

    return _make


@pytest.fixture
def make_record(channel, make_user, day):
    """Create a participant whose record for the day sits in `state`."""

    def _make(handle, state=OrderState.IDLE, name=None, **flags):
        user = make_user(handle, name, **flags)
        record = order_records.create_if_needed(user, channel.id, day)
        for event in _PATHS[state]:
            record = order_records.fire(record, event)
        if state is OrderState.DONE:
            for answer in ("Chicken tikka", "Pulau", "Garlic naan"):
                record = order_records.process_answer(record, answer)
        return record

    return _make
