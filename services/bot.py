import asyncio
import logging
import os
from typing import List

from dotenv import load_dotenv
from telegram import Message, MessageEntity, Update
from telegram.ext import Application, ContextTypes, MessageHandler, filters
from telegram.request import HTTPXRequest

from services import directory, dispatcher, memory
from services.dispatcher import InboundMessage
from services.normalizer import mention, replace_mentions
from standup_order.config import get_admin_user_ids, section

logger = logging.getLogger(__name__)


def _text_with_mentions(message: Message) -> str:
    """Rewrite Telegram mentions as <@user_id> tokens.

    A text mention carries the user itself. A plain @username mention is
    looked up among the people the bot has already seen; unknown names are
    left as typed.
    """
    text = message.text or ""
    entities = message.parse_entities([MessageEntity.TEXT_MENTION, MessageEntity.MENTION])
    for entity, fragment in entities.items():
        if not fragment:
            continue
        if entity.type == MessageEntity.TEXT_MENTION and entity.user:
            mentioned = entity.user
            directory.upsert_user(
                str(mentioned.id),
                mentioned.full_name,
                is_bot=bool(mentioned.is_bot),
                username=mentioned.username,
            )
            text = text.replace(fragment, mention(str(mentioned.id)), 1)
        elif entity.type == MessageEntity.MENTION:
            participant = directory.resolve_by_username(fragment)
            if participant is None:
                logger.debug("Unknown username mentioned: %s", fragment)
                continue
            text = text.replace(fragment, mention(participant.handle), 1)
    return text


def _render(text: str) -> str:
    return replace_mentions(text, directory.display_name_for_handle)


async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    user = update.effective_user
    chat = update.effective_chat
    if not message or not message.text or not user or not chat:
        return

    admin_ids = get_admin_user_ids()
    directory.upsert_user(
        str(user.id),
        user.full_name,
        is_bot=bool(user.is_bot),
        is_admin=True if int(user.id) in admin_ids else None,
        username=user.username,
    )

    inbound = InboundMessage(
        user_handle=str(user.id),
        channel_handle=str(chat.id),
        text=_text_with_mentions(message),
        channel_name=str(chat.title or chat.full_name or ""),
    )
    outbox: List[str] = []
    # Dispatch hits SQLite synchronously; keep it off the event loop.
    await asyncio.to_thread(dispatcher.dispatch, inbound, outbox.append)

    for text in outbox:
        await chat.send_message(_render(text))


async def _on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("Update handling failed: %s", context.error, exc_info=context.error)


def build_application(token: str) -> Application:
    request = HTTPXRequest(
        connect_timeout=30,
        read_timeout=60,
        write_timeout=60,
        pool_timeout=30,
    )
    app = Application.builder().token(token).request(request).build()
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))
    app.add_error_handler(_on_error)
    return app


def run_bot() -> None:
    load_dotenv()
    memory.init_db()
    logger.info("Standup order bot DB path: %s", str(memory.get_db_path()))

    env_var_name = section("telegram").get("bot_token_env_var") or "TELEGRAM_BOT_TOKEN"
    token = os.getenv(env_var_name, "").strip()
    if not token:
        raise RuntimeError(f"{env_var_name} is not set. Put it in your .env file.")

    app = build_application(token)
    app.run_polling(allowed_updates=Update.ALL_TYPES)
