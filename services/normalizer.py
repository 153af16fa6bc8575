import logging
import re
from typing import Callable, Optional

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"<@([^<>\s]*?)>")
UNKNOWN_USER = "User Not Available"

Resolver = Callable[[str], Optional[str]]


def mention(handle: str) -> str:
    return f"<@{handle}>"


def mentioned_handles(text: str) -> list:
    """Handles in order of appearance, repeats included."""
    return MENTION_PATTERN.findall(str(text or ""))


def replace_mentions(text: Optional[str], resolve: Resolver) -> str:
    """Swap every `<@handle>` for the participant's display name.

    Unresolved handles become UNKNOWN_USER. Never raises.
    """
    raw = str(text or "")
    if "<@" not in raw:
        return raw

    cache: dict = {}

    def _name(match: "re.Match[str]") -> str:
        handle = match.group(1)
        if handle not in cache:
            try:
                name = resolve(handle)
            except Exception as e:
                logger.warning("Mention lookup failed for %s: %s", handle, e)
                name = None
            cache[handle] = str(name) if name else UNKNOWN_USER
        return cache[handle]

    return MENTION_PATTERN.sub(_name, raw)
