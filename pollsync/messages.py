"""Operator-facing reply texts."""

from collections.abc import Sequence

from pollsync.errors import StoreUnavailable
from pollsync.models import ColumnCandidate, Conflict, ConversationSession, PollRecord, WriteReport

MSG_USE_UPDATE_AGAIN = "Use /update to begin again."
ERR_INVALID_YES_NO = '❌ Please answer "yes" or "no"'
ERR_SESSION_DATA_LOST = f"❌ Error: session data lost. {MSG_USE_UPDATE_AGAIN}"
ERR_POLL_NOT_FOUND = "❌ Error: poll data not found. Please forward the poll again."
ERR_POLL_INTENT = '❌ Please reply with "1" to update sheet or "2" to view voters.'
ERR_NO_USERNAMES = "❌ Failed to recognize usernames. Try again or use /help"
ERR_UNTRACKED_POLL = "ℹ️ This poll was not created by me. I can only track polls created with /poll command."
ERR_NO_POLL_SUPPORT = "❌ This chat cannot create polls."

MSG_IDLE_HINT = "👋 Use /update to begin updating a column, or /help for commands."
MSG_POLL_CREATED = "✅ Poll created! Forward it back to me to see voters or update the sheet."

_COMMANDS = (
    "• /poll - Create a trackable poll\n"
    "• /update - Update Google Sheet with attending players\n"
    "• /help - Show this help\n"
    "• /cancel or /abort - Cancel current operation"
)

WELCOME_TEXT = (
    "👋 Welcome to Football Poll Sheets Sync Bot!\n\n"
    f"📖 Commands:\n{_COMMANDS}\n\n"
    "💡 Tip: Forward a poll created by this bot to see voters or update the sheet!"
)

HELP_TEXT = (
    f"📖 Help:\n\n{_COMMANDS}\n\n"
    "The bot will guide you through updating a column step by step."
)


def _bullets(items: Sequence[str]) -> str:
    return "\n".join(f"• {item}" for item in items)


def cancelled(verb: str = "cancelled") -> str:
    return f"✅ Operation {verb}. {MSG_USE_UPDATE_AGAIN}"


def store_error(exc: StoreUnavailable) -> str:
    return (
        f"❌ Error {exc.action}: {exc.cause}\n\n"
        f"Check your Google Sheets API settings. {MSG_USE_UPDATE_AGAIN}"
    )


def poll_options(record: PollRecord) -> str:
    lines = []
    for index, option in enumerate(record.options):
        count = len(record.ballot.get(index, ()))
        lines.append(f"{index + 1}. {option} ({count} vote{'' if count == 1 else 's'})")
    return "\n".join(lines)


def poll_menu(record: PollRecord) -> str:
    return (
        f'📊 Poll: "{record.question}"\n\n{poll_options(record)}\n\n'
        "What would you like to do?\n"
        "1. Update sheet with poll results\n"
        "2. View voters"
    )


def poll_option_prompt(record: PollRecord) -> str:
    return (
        f"Which option contains the attending players?\n\n{poll_options(record)}\n\n"
        'Reply with the option number (e.g., "1"):'
    )


def poll_voters(record: PollRecord) -> str:
    lines = [f'📊 Poll: "{record.question}"', ""]
    for index, option in enumerate(record.options):
        voters = sorted(record.ballot.get(index, ()), key=str.lower)
        lines.append(f"{index + 1}. {option}: {' '.join(voters) or '(no votes)'}")
    return "\n".join(lines)


def option_selected(option: str, identities: Sequence[str]) -> str:
    return f'✅ Selected option: "{option}"\n👥 Attending players: {" ".join(identities)}'


def poll_creation_failed(exc: Exception) -> str:
    return f"❌ Error creating poll: {exc}\n\nTry /poll again. {MSG_USE_UPDATE_AGAIN}"


def no_voters() -> str:
    return f"❌ No voters found for this option. {MSG_USE_UPDATE_AGAIN}"


def no_date_columns(first_column: str) -> str:
    return (
        f"❌ No date columns found. Starting from column {first_column}.\n\n"
        "Would you like to create a new column? (yes/no)"
    )


def column_detected(candidate: ColumnCandidate) -> str:
    return (
        f"📅 I detected column {candidate.column} ({candidate.label}).\n\n"
        "Update this column? (yes/no)\n"
        "You can also reply with a column letter or a date name."
    )


def create_column_prompt(column: str) -> str:
    return f"Create new column {column}? (yes/no)"


def column_not_found(query: str) -> str:
    return f'❌ No column found for "{query}". Reply yes/no, a column letter or a date name.'


def column_out_of_range(column: str, first_column: str, last_column: str) -> str:
    return f"❌ Column {column} is outside the date area ({first_column}-{last_column}). Pick another column."


def column_choices(candidates: Sequence[ColumnCandidate]) -> str:
    lines = ["🔎 Several columns match:", ""]
    lines += [f"{i}. {c.column} ({c.label})" for i, c in enumerate(candidates, start=1)]
    lines += ["", "Reply with the number or the column letter:"]
    return "\n".join(lines)


def date_name_prompt(column: str, missing: bool) -> str:
    if missing:
        return f"📅 Column {column} has no date name.\n\nPlease provide the date name for row 1:"
    return f"📅 Please provide the date name for column {column} (row 1):"


def cost_prompt(column: str) -> str:
    return f"💰 Column {column} has no cost specified.\n\nPlease provide the field cost for row 2:"


def usernames_prompt(session: ConversationSession) -> str:
    text = (
        f"✅ Column {session.target_column} metadata:\n"
        f"• Date: {session.column_label}\n"
        f"• Cost: {_number(session.column_cost)}\n"
    )
    if session.column_headcount is not None:
        text += f"• Players: {session.column_headcount}\n"
    text += (
        "\nNow send me the list of usernames who will attend "
        "(with or without @, separated by spaces or commas):"
    )
    return text


def no_matches(identities: Sequence[str], identity_column: str) -> str:
    return (
        "❌ No matches found in the sheet.\n\n"
        f"Sent usernames: {', '.join(identities)}\n\n"
        f"Check that usernames in the sheet (column {identity_column}) match the ones you sent.\n\n"
        f"{MSG_USE_UPDATE_AGAIN}"
    )


def headcount_confirmation(count: int) -> str:
    return (
        f"👥 I found {count} recognized username(s).\n\n"
        f"Is {count} the total number of players who attended? (yes/no)"
    )


HEADCOUNT_PROMPT = "How many players attended the match?"


def conflicts_prompt(column: str, conflicts: Sequence[Conflict]) -> str:
    lines = [f"⚠️ These users already have values in column {column}:", ""]
    lines += [f"• {c.identity}: {c.existing_value}" for c in conflicts]
    lines += ["", "Overwrite? (yes/no)"]
    return "\n".join(lines)


def update_result(report: WriteReport) -> str:
    text = f"✅ Updated {report.updated_count} record(s) in column {report.column}"
    text += f":\n\n{_bullets(report.updated)}" if report.updated else "."
    if report.skipped:
        text += f"\n\n⏭️ Skipped {len(report.skipped)} cell(s) with existing values:\n{_bullets(report.skipped)}"
    if report.unmatched:
        text += f"\n\n⚠️ Not found in sheet:\n{_bullets(report.unmatched)}"
    return text


def _number(value: float | None) -> str:
    if value is None:
        return "-"
    return str(int(value)) if float(value).is_integer() else str(value)
