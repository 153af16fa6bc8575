import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from telegram import MessageEntity

from services import bot, directory


def _update(text, user_id=42, full_name="Alice", username="alice", entities=None):
    update = MagicMock()
    update.effective_user.id = user_id
    update.effective_user.full_name = full_name
    update.effective_user.username = username
    update.effective_user.is_bot = False
    update.effective_chat.id = -100
    update.effective_chat.title = "Curry club"
    update.effective_chat.send_message = AsyncMock()
    update.effective_message.text = text
    update.effective_message.parse_entities.return_value = entities or {}
    return update


@pytest.fixture
def captured(monkeypatch):
    calls = []

    def fake_dispatch(inbound, sender, today=None):
        calls.append(inbound)
        sender("<@42> hello")

    monkeypatch.setattr(bot.dispatcher, "dispatch", fake_dispatch)
    return calls


def test_handle_text_dispatches_and_replies(captured):
    update = _update("-y")

    asyncio.run(bot.handle_text(update, MagicMock()))

    assert captured[0].user_handle == "42"
    assert captured[0].channel_handle == "-100"
    assert captured[0].channel_name == "Curry club"
    assert directory.resolve_by_handle("42").full_name == "Alice"
    update.effective_chat.send_message.assert_awaited_once_with("Alice hello")


def test_text_mentions_become_tokens(captured):
    entity = MagicMock()
    entity.type = MessageEntity.TEXT_MENTION
    entity.user.id = 7
    entity.user.full_name = "Bob"
    entity.user.username = None
    entity.user.is_bot = False
    update = _update("-v Bob", entities={entity: "Bob"})

    asyncio.run(bot.handle_text(update, MagicMock()))

    assert captured[0].text == "-v <@7>"
    assert directory.resolve_by_handle("7").full_name == "Bob"


def test_username_mentions_become_tokens(captured):
    directory.upsert_user("7", "Bob", username="Bob_Curry")
    entity = MagicMock()
    entity.type = MessageEntity.MENTION
    update = _update("-v @bob_curry", entities={entity: "@bob_curry"})

    asyncio.run(bot.handle_text(update, MagicMock()))

    assert captured[0].text == "-v <@7>"
    assert directory.resolve_by_handle("42").username == "alice"


def test_unknown_username_is_left_as_typed(captured):
    entity = MagicMock()
    entity.type = MessageEntity.MENTION
    update = _update("-v @nobody", entities={entity: "@nobody"})

    asyncio.run(bot.handle_text(update, MagicMock()))

    assert captured[0].text == "-v @nobody"


def test_admins_come_from_config(captured, monkeypatch):
    monkeypatch.setattr(bot, "get_admin_user_ids", lambda: {42})
    asyncio.run(bot.handle_text(_update("status"), MagicMock()))
    assert directory.resolve_by_handle("42").is_admin is True


def test_updates_without_text_are_skipped(captured):
    update = _update(None)
    asyncio.run(bot.handle_text(update, MagicMock()))
    assert captured == []


def test_build_application_registers_handlers():
    app = bot.build_application("123456:TEST-TOKEN")
    assert app.handlers[0]
