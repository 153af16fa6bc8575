"""Turn one inbound chat message into at most one order command."""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterator, List, Optional

from services import channels, commands_registry, directory, order_records, turns
from services.channels import Channel, Sender
from services.directory import Participant
from services.incoming import Command, CommandContext, InvalidCommandError, Variant
from services.normalizer import mention, mentioned_handles
from services.order_records import OrderKey, OrderRecord
from services.order_state import OrderState
from standup_order.logging import correlation_context, log_with_context

logger = logging.getLogger(__name__)


@dataclass
class InboundMessage:
    user_handle: str
    channel_handle: str
    text: str
    channel_name: str = ""


_locks_guard = threading.Lock()
# key -> [lock, threads holding or waiting for it]
_record_locks: Dict[OrderKey, List] = {}


@contextmanager
def record_lock(key: OrderKey) -> Iterator[None]:
    """Serialize validate+execute for one record within this process.

    An entry lives only while some thread holds or waits for it.
    """
    with _locks_guard:
        entry = _record_locks.setdefault(key, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _locks_guard:
            entry[1] -= 1
            if not entry[1]:
                del _record_locks[key]


def select_variant(text: str, record: Optional[OrderRecord]) -> Optional[Variant]:
    answering = record is not None and record.state is OrderState.ANSWERING
    stripped = str(text or "").strip()
    if not stripped:
        return None
    # While answering only dash commands count; plain words are answers.
    if not answering or stripped.startswith("-"):
        variant = commands_registry.variant_for(stripped)
        if variant is not None:
            return variant
    return commands_registry.answer_variant() if answering else None


def _resolve_target(text: str, issuer: Participant, channel: Channel, day: date):
    handles = mentioned_handles(text)
    if not handles:
        raise InvalidCommandError("Mention the user you mean, like -v <@someone>.")
    target = directory.resolve_by_handle(handles[0])
    if target is None:
        raise InvalidCommandError(f"I don't know who {mention(handles[0])} is.")
    if target.id == issuer.id:
        raise InvalidCommandError("You can't do that to yourself.")
    if target.is_bot:
        raise InvalidCommandError(f"{mention(target.handle)} doesn't take part in the order.")
    # Lookup only: a target who has not spoken today has no record yet.
    return target, order_records.get_record(target.id, channel.id, day)


def _post_turn(channel: Channel, day: date) -> None:
    record = turns.advance(channel.id, day)
    if record is None:
        return
    participant = directory.get_participant(record.user_id)
    channel.post_message(turns.turn_prompt(mention(participant.handle)))


def dispatch(message: InboundMessage, sender: Sender, *, today: Optional[date] = None) -> Optional[str]:
    """Run the command carried by `message` and post its outcome.

    Returns the text posted for the command, or None when the message was
    not a command. Anything other than InvalidCommandError propagates.
    """
    day = today or date.today()
    with correlation_context():
        issuer = directory.require_by_handle(message.user_handle)
        if issuer.is_bot:
            return None

        channel = channels.get_or_create_channel(
            message.channel_handle, message.channel_name, sender=sender
        )
        existing = order_records.get_record(issuer.id, channel.id, day)
        record = existing or order_records.create_if_needed(issuer, channel.id, day)
        if existing is None:
            _post_turn(channel, day)
            record = order_records.get_record_by_id(record.id)

        variant = select_variant(message.text, record)
        if variant is None:
            logger.debug("Ignoring message from %s", issuer.handle)
            return None

        context = CommandContext(
            issuer=issuer,
            channel=channel,
            text=message.text,
            record=record,
            day=day,
        )
        try:
            if variant.compound:
                context.target, context.target_record = _resolve_target(
                    message.text, issuer, channel, day
                )
                key = OrderKey(context.target.id, channel.id, order_records.day_key(day))
            else:
                key = record.key

            with record_lock(key):
                # Re-read under the lock; another thread may have moved it.
                if variant.compound:
                    context.target_record = order_records.get_record(context.target.id, channel.id, day)
                else:
                    context.record = order_records.get_record_by_id(record.id)
                command = Command(variant, context)
                command.validate()
                notification = command.execute()
        except InvalidCommandError as e:
            log_with_context(
                logger, logging.INFO, "Command refused",
                command=variant.name, issuer=issuer.handle, reason=e.message,
            )
            channel.post_message(e.message)
            return e.message

        log_with_context(
            logger, logging.INFO, "Command executed",
            command=variant.name, issuer=issuer.handle, channel=channel.handle,
        )
        channel.post_message(notification)
        _post_turn(channel, day)
        return notification
