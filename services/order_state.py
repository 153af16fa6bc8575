"""Order state machine: states, events and the prompts tied to them."""

from enum import Enum
from typing import Callable, Dict, Optional, Tuple


class OrderState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    ANSWERING = "answering"
    DONE = "done"
    NOT_AVAILABLE = "not_available"
    VACATION = "vacation"


INIT = "init"
START = "start"
SKIP = "skip"
FINISH = "finish"
EDIT = "edit"
NOT_AVAILABLE = "not_available"
VACATION = "vacation"

# event -> (required source state, target state)
TRANSITIONS: Dict[str, Tuple[OrderState, OrderState]] = {
    INIT: (OrderState.IDLE, OrderState.ACTIVE),
    START: (OrderState.ACTIVE, OrderState.ANSWERING),
    SKIP: (OrderState.ACTIVE, OrderState.IDLE),
    FINISH: (OrderState.ANSWERING, OrderState.DONE),
    EDIT: (OrderState.DONE, OrderState.ANSWERING),
    NOT_AVAILABLE: (OrderState.ACTIVE, OrderState.NOT_AVAILABLE),
    VACATION: (OrderState.ACTIVE, OrderState.VACATION),
}

COMPLETED_STATES = frozenset({OrderState.DONE, OrderState.VACATION, OrderState.NOT_AVAILABLE})
IN_PROGRESS_STATES = frozenset({OrderState.ACTIVE, OrderState.ANSWERING})

SLOT_COLUMNS: Dict[int, str] = {1: "yesterday", 2: "today", 3: "conflicts"}

QUESTIONS: Dict[int, str] = {
    1: "1. Which curry would you like?",
    2: "2. Which rice would you like (plain/pulau/coconut)?",
    3: "3. Would you like naan (plain/butter/garlic) or popadoms?",
}

MAXIMUM_AUTO_SKIPPED_TIMES = 2


class InvalidTransition(RuntimeError):
    """An event was fired while the record was not in the event's source state."""

    def __init__(self, event: str, state: OrderState):
        self.event = event
        self.state = OrderState(state)
        super().__init__(f"cannot fire '{event}' from state '{self.state.value}'")


def transition_for(event: str, state: OrderState) -> OrderState:
    """Return the target state for `event`, or raise if `state` is not its source."""
    try:
        source, target = TRANSITIONS[event]
    except KeyError:
        raise ValueError(f"Unknown order event: {event!r}") from None
    if OrderState(state) is not source:
        raise InvalidTransition(event, state)
    return target


def is_completed(state: OrderState) -> bool:
    return OrderState(state) in COMPLETED_STATES


def is_in_progress(state: OrderState) -> bool:
    return OrderState(state) in IN_PROGRESS_STATES


def question_for_number(number: int) -> Optional[str]:
    return QUESTIONS.get(number)


def first_unset_slot(answers: Tuple[Optional[str], Optional[str], Optional[str]]) -> Optional[int]:
    for index, value in enumerate(answers, start=1):
        if value is None:
            return index
    return None


def current_question(answers: Tuple[Optional[str], Optional[str], Optional[str]]) -> Optional[str]:
    slot = first_unset_slot(answers)
    return QUESTIONS[slot] if slot else None


_ANSWERING_STATUS = {
    1: "{who} is answering which curry they want.",
    2: "{who} is answering which rice they want.",
    3: "{who} is answering which naan they want.",
}

_STATUS: Dict[OrderState, Callable[[str], str]] = {
    OrderState.IDLE: "{who} is in the queue waiting to do their curry order.".format,
    OrderState.ACTIVE: "{who} needs to answer if they want to order curry.".format,
    OrderState.DONE: "{who} already did their order.".format,
    OrderState.NOT_AVAILABLE: "{who} is not available.".format,
    OrderState.VACATION: "{who} is on vacation.".format,
}


def status_text(
    state: OrderState,
    answers: Tuple[Optional[str], Optional[str], Optional[str]],
    who: str,
) -> str:
    state = OrderState(state)
    if state is OrderState.ANSWERING:
        slot = first_unset_slot(answers) or 3
        return _ANSWERING_STATUS[slot].format(who=who)
    return _STATUS[state](who=who)
