from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from services.incoming import (
    ANSWER,
    DELETE,
    EDIT_ORDER,
    NOT_AVAILABLE_TODAY,
    POSTPONE,
    SIMPLE,
    START_ORDER,
    STATUS,
    VACATION_USER,
    CommandContext,
    Variant,
)


GROUP_ORDER: List[str] = [
    "Order",
    "Queue",
    "Admin",
    "Core",
]


@dataclass
class CommandSpec:
    name: str
    usage: str
    description: str
    group: str
    variant: Optional[Variant]
    admin_only: bool = False


# Alternative spellings people actually type in the channel.
COMMAND_ALIASES: Dict[str, str] = {
    "-y": "start",
    "yes": "start",
    "-s": "skip",
    "postpone": "skip",
    "-d": "delete",
    "-e": "edit",
    "-v": "vacation",
    "-na": "na",
    "n/a": "na",
    "-h": "help",
}


def _c(
    name: str,
    usage: str,
    description: str,
    group: str,
    variant: Optional[Variant],
    *,
    admin_only: bool = False,
) -> CommandSpec:
    return CommandSpec(
        name=name,
        usage=usage,
        description=description,
        group=group,
        variant=variant,
        admin_only=admin_only,
    )


COMMANDS: Dict[str, CommandSpec] = {
    "start": _c("start", "-y", "start your order when it is your turn", "Order", START_ORDER),
    "delete": _c("delete", "-d <1|2|3>", "delete one of your answers", "Order", DELETE),
    "edit": _c("edit", "-e", "reopen a finished order", "Order", EDIT_ORDER),
    "skip": _c("skip", "-s", "go to the back of the queue", "Queue", POSTPONE),
    "na": _c("na", "-na", "you are not available today", "Queue", NOT_AVAILABLE_TODAY),
    "vacation": _c("vacation", "-v <@user>", "put someone on vacation for today", "Admin", VACATION_USER, admin_only=True),
    "status": _c("status", "status", "where you are in today's order", "Core", STATUS),
    "help": _c("help", "-h", "this list", "Core", None),
}


def resolve_root(command_name: str) -> str:
    key = str(command_name or "").strip().lower()
    if not key:
        return ""
    return COMMAND_ALIASES.get(key, key)


def command_specs() -> List[CommandSpec]:
    return list(COMMANDS.values())


def get_root_spec(root: str) -> Optional[CommandSpec]:
    return COMMANDS.get(resolve_root(root))


def help_text() -> str:
    lines = ["Order commands:"]
    for group in GROUP_ORDER:
        specs = [spec for spec in command_specs() if spec.group == group]
        if not specs:
            continue
        lines.append("")
        lines.append(f"{group}:")
        for spec in specs:
            line = f"{spec.usage} - {spec.description}"
            if spec.admin_only:
                line += " (admin)"
            lines.append(line)
    lines.append("")
    lines.append("Anything else you type while answering is taken as your answer.")
    return "\n".join(lines)


def _help(ctx: CommandContext) -> str:
    return help_text()


HELP = SIMPLE.extend("help", effects=(_help,))
COMMANDS["help"].variant = HELP


def variant_for(text: str) -> Optional[Variant]:
    """Variant named by the first word of `text`, if any."""
    parts = str(text or "").strip().split()
    if not parts:
        return None
    spec = get_root_spec(parts[0])
    return spec.variant if spec else None


def answer_variant() -> Variant:
    return ANSWER


def validate_registry() -> List[str]:
    issues: List[str] = []
    for key, spec in COMMANDS.items():
        if key != spec.name:
            issues.append(f"Command key '{key}' does not match name '{spec.name}'")
        if spec.variant is None:
            issues.append(f"Missing variant: {spec.name}")
        if spec.group not in GROUP_ORDER:
            issues.append(f"Unknown command group '{spec.group}' on {spec.name}")
        if spec.admin_only and spec.variant is not None and not spec.variant.compound:
            issues.append(f"Admin command {spec.name} must act on another participant")

    for alias, root in COMMAND_ALIASES.items():
        if root not in COMMANDS:
            issues.append(f"Alias '{alias}' points at unknown command '{root}'")
        if alias in COMMANDS:
            issues.append(f"Alias '{alias}' shadows a command name")

    return issues
