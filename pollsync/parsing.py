"""Grammars for operator replies: yes/no, numbers, option ordinals, /poll arguments."""

import math
import re

from pollsync.errors import ValidationFailed

_YES = {"yes", "y", "да", "д"}
_NO = {"no", "n", "нет", "н"}

_POLL_SEPARATORS = re.compile(r"[|;\n]+")


def parse_yes_no(text: str) -> bool | None:
    """Return True/False for a recognized answer, None otherwise."""
    normalized = text.strip().lower()
    if normalized in _YES:
        return True
    if normalized in _NO:
        return False
    return None


def parse_label(text: str) -> str:
    label = text.strip()
    if not label:
        raise ValidationFailed("❌ Please provide a date name")
    return label


def parse_cost(text: str) -> float:
    """Non-negative number; a decimal comma is accepted."""
    try:
        cost = float(text.strip().replace(",", "."))
    except ValueError:
        raise ValidationFailed("❌ Please provide a valid positive number for the cost") from None
    if not math.isfinite(cost) or cost < 0:
        raise ValidationFailed("❌ Please provide a valid positive number for the cost")
    return cost


def parse_count(text: str) -> int:
    try:
        count = int(text.strip())
    except ValueError:
        raise ValidationFailed("❌ Please provide a valid positive integer for the player count") from None
    if count < 0:
        raise ValidationFailed("❌ Please provide a valid positive integer for the player count")
    return count


def parse_ordinal(text: str, upper: int) -> int:
    """Parse a 1-based choice in [1, upper] and return it 0-based."""
    try:
        number = int(text.strip())
    except ValueError:
        raise ValidationFailed("❌ Please provide a valid option number.") from None
    if number < 1:
        raise ValidationFailed("❌ Please provide a valid option number.")
    if number > upper:
        raise ValidationFailed(f"❌ Invalid option number. Please choose between 1 and {upper}.")
    return number - 1


def parse_poll_command(args: str) -> tuple[str, list[str]]:
    """Split "Question? | Option1 | Option2" into (question, options).

    Separators are |, ; or newlines. At least one option is required.
    """
    parts = [p.strip() for p in _POLL_SEPARATORS.split(args) if p.strip()]
    if len(parts) < 2:
        raise ValidationFailed(
            "❌ Please provide at least a question and one option.\n\n"
            "Usage: /poll Question? | Option1 | Option2\n"
            "Separators: | or ; or newlines"
        )
    return parts[0], parts[1:]


def split_command(text: str) -> tuple[str, str] | None:
    """Return (command, args) for "/cmd[@bot] args", or None for plain text."""
    stripped = text.strip()
    if not stripped.startswith("/"):
        return None
    head, _, rest = stripped.partition(" ")
    if "\n" in head:
        head, _, extra = head.partition("\n")
        rest = extra + (" " + rest if rest else "")
    command = head[1:].split("@", 1)[0].lower()
    return command, rest.strip()
