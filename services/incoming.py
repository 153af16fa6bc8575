"""Inbound order commands.

Each command is a `Variant`: a name plus a tuple of checks and a tuple of
effects. A variant built with `extend()` puts its own checks in front of its
parent's and its own effects after them, so validation runs from the most
specific rule down to the base and execution runs base bookkeeping first.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional, Tuple

from services import order_records
from services.channels import Channel
from services.directory import Participant
from services.normalizer import mention
from services.order_records import OrderRecord
from services.order_state import (
    EDIT,
    NOT_AVAILABLE,
    SKIP,
    START,
    VACATION,
    OrderState,
    status_text,
)

logger = logging.getLogger(__name__)


class InvalidCommandError(Exception):
    """A command was refused. `message` is meant for the channel."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


@dataclass
class CommandContext:
    issuer: Participant
    channel: Channel
    text: str
    record: Optional[OrderRecord] = None
    target: Optional[Participant] = None
    target_record: Optional[OrderRecord] = None
    day: Optional[date] = None


Check = Callable[[CommandContext], None]
Effect = Callable[[CommandContext], Optional[str]]


@dataclass(frozen=True)
class Variant:
    name: str
    compound: bool = False
    checks: Tuple[Check, ...] = ()
    effects: Tuple[Effect, ...] = ()

    def extend(
        self,
        name: str,
        *,
        checks: Tuple[Check, ...] = (),
        effects: Tuple[Effect, ...] = (),
    ) -> "Variant":
        return Variant(
            name=name,
            compound=self.compound,
            checks=tuple(checks) + self.checks,
            effects=self.effects + tuple(effects),
        )


@dataclass
class Command:
    variant: Variant
    context: CommandContext
    _validated: bool = field(default=False, init=False, repr=False)

    @property
    def name(self) -> str:
        return self.variant.name

    @property
    def subject(self) -> Optional[OrderRecord]:
        """The record this command acts on."""
        return self.context.target_record if self.variant.compound else self.context.record

    def validate(self) -> None:
        for check in self.variant.checks:
            check(self.context)
        self._validated = True

    def execute(self) -> str:
        if not self._validated:
            raise RuntimeError(f"{self.name}: validate() must pass before execute()")
        notification = ""
        for effect in self.variant.effects:
            result = effect(self.context)
            if result:
                notification = result
        return notification


SIMPLE = Variant("simple")
COMPOUND = Variant("compound", compound=True)


def _who(ctx: CommandContext) -> str:
    return mention(ctx.issuer.handle)


def _target(ctx: CommandContext) -> str:
    return mention(ctx.target.handle) if ctx.target else "that user"


# Delete

def _delete_after_turn(ctx: CommandContext) -> None:
    if ctx.record.state in (OrderState.IDLE, OrderState.ACTIVE):
        raise InvalidCommandError(f"{_who(ctx)} You can not delete an answer before your order.")


def delete_slot(text: str) -> Optional[int]:
    tail = str(text or "").strip()[-1:]
    if tail.isdigit() and 1 <= int(tail) <= 3:
        return int(tail)
    return None


def _delete_slot_given(ctx: CommandContext) -> None:
    if delete_slot(ctx.text) is None:
        raise InvalidCommandError("Tell me which answer to delete: 1, 2 or 3.")


def _delete_answer(ctx: CommandContext) -> str:
    ctx.record = order_records.delete_answer(ctx.record, delete_slot(ctx.text))
    return "Answer deleted"


# Postpone

def _postpone_when_asked(ctx: CommandContext) -> None:
    if ctx.record.state is not OrderState.ACTIVE:
        raise InvalidCommandError("You can only skip the order when asked.")


def _postpone_not_last(ctx: CommandContext) -> None:
    if not ctx.channel.pending_participants(ctx.day) - {ctx.issuer.id}:
        raise InvalidCommandError(
            "You cannot skip your order because you are the last one in the stack."
        )


def _postpone(ctx: CommandContext) -> str:
    ctx.record = order_records.fire(ctx.record, SKIP)
    return f"{_who(ctx)} has been skipped. We will come back to them at the end."


# Vacation

def _vacation_admin_only(ctx: CommandContext) -> None:
    if not ctx.issuer.is_admin:
        raise InvalidCommandError("You don't have permission to vacation a user.")


def _vacation_not_idle(ctx: CommandContext) -> None:
    # No record yet means they have not reached the queue today.
    if ctx.target_record is None or ctx.target_record.state is OrderState.IDLE:
        raise InvalidCommandError(f"You need to wait until {_target(ctx)} turns.")


def _vacation_not_completed(ctx: CommandContext) -> None:
    if ctx.target_record.completed:
        raise InvalidCommandError(f"{_target(ctx)} has already completed their order for today.")


def _vacation_not_answering(ctx: CommandContext) -> None:
    if ctx.target_record.state is OrderState.ANSWERING:
        raise InvalidCommandError(f"{_target(ctx)} is doing their order.")


def _vacation(ctx: CommandContext) -> str:
    ctx.target_record = order_records.fire(ctx.target_record, VACATION)
    return f"{_target(ctx)} has been put on vacation."


# Start / answer / edit / not available / status

def _require_state(state: OrderState, message: str) -> Check:
    def check(ctx: CommandContext) -> None:
        if ctx.record.state is not state:
            raise InvalidCommandError(message)

    check.__name__ = f"_require_{state.value}"
    return check


def _start(ctx: CommandContext) -> str:
    ctx.record = order_records.fire(ctx.record, START)
    question = ctx.record.current_question
    return f"{_who(ctx)} {question}" if question else f"{_who(ctx)} your answers are already in."


def _answer(ctx: CommandContext) -> str:
    ctx.record = order_records.process_answer(ctx.record, ctx.text)
    if ctx.record.state is OrderState.DONE:
        return f"Thanks {_who(ctx)}, your order is in."
    question = ctx.record.current_question
    return f"{_who(ctx)} {question}" if question else ""


def _edit(ctx: CommandContext) -> str:
    ctx.record = order_records.fire(ctx.record, EDIT)
    return (
        f"{_who(ctx)} you can change your order now. "
        "Delete an answer with -d 1, -d 2 or -d 3 and send the new one."
    )


def _not_available(ctx: CommandContext) -> str:
    ctx.record = order_records.fire(ctx.record, NOT_AVAILABLE)
    return f"{_who(ctx)} is not available today."


def _status(ctx: CommandContext) -> str:
    return status_text(ctx.record.state, ctx.record.answers, _who(ctx))


DELETE = SIMPLE.extend(
    "delete",
    checks=(_delete_after_turn, _delete_slot_given),
    effects=(_delete_answer,),
)
POSTPONE = SIMPLE.extend(
    "postpone",
    checks=(_postpone_when_asked, _postpone_not_last),
    effects=(_postpone,),
)
VACATION_USER = COMPOUND.extend(
    "vacation",
    checks=(
        _vacation_admin_only,
        _vacation_not_idle,
        _vacation_not_completed,
        _vacation_not_answering,
    ),
    effects=(_vacation,),
)
START_ORDER = SIMPLE.extend(
    "start",
    checks=(_require_state(OrderState.ACTIVE, "It is not your turn yet."),),
    effects=(_start,),
)
ANSWER = SIMPLE.extend(
    "answer",
    checks=(_require_state(OrderState.ANSWERING, "You are not answering your order right now."),),
    effects=(_answer,),
)
EDIT_ORDER = SIMPLE.extend(
    "edit",
    checks=(_require_state(OrderState.DONE, "You can only edit a finished order."),),
    effects=(_edit,),
)
NOT_AVAILABLE_TODAY = SIMPLE.extend(
    "not_available",
    checks=(
        _require_state(OrderState.ACTIVE, "You can only say you are not available when asked."),
    ),
    effects=(_not_available,),
)
STATUS = SIMPLE.extend("status", effects=(_status,))
