import pytest

from services import channels, directory
from services.directory import UnknownParticipantError


def test_upsert_keeps_flags_not_given():
    directory.upsert_user("U1", "Alice", is_admin=True, email="a@example.com", send_report=True)
    again = directory.upsert_user("U1", "Alice Smith")

    assert again.full_name == "Alice Smith"
    assert again.is_admin is True
    assert again.send_report is True
    assert again.email == "a@example.com"
    assert directory.is_admin(again)
    assert not directory.is_bot(again)


def test_lookup_helpers():
    alice = directory.upsert_user("U1", "Alice")
    assert directory.resolve_by_handle("U1") == alice
    assert directory.resolve_by_handle("U2") is None
    assert directory.display_name_for_handle("U1") == "Alice"
    assert directory.display_name_for_handle("U2") is None
    assert directory.get_participant(alice.id) == alice
    with pytest.raises(UnknownParticipantError):
        directory.require_by_handle("U2")
    with pytest.raises(ValueError):
        directory.upsert_user(" ", "Nobody")


def test_channel_find_or_create():
    posted = []
    first = channels.get_or_create_channel("C1", "curry-club", sender=posted.append)
    second = channels.get_or_create_channel("C1")

    assert first.id == second.id
    assert second.name == "curry-club"
    first.post_message("hello")
    first.post_message("")
    assert posted == ["hello"]


def test_username_lookup_ignores_case_and_at_sign():
    directory.upsert_user("7", "Bob", username="@Bob_Curry")
    again = directory.upsert_user("7", "Bob")

    assert again.username == "bob_curry"
    assert directory.resolve_by_username("@BOB_curry").handle == "7"
    assert directory.resolve_by_username("nobody") is None
    assert directory.resolve_by_username("@") is None
