"""Pure dataclasses for the poll-to-sheet conversation. No logic beyond reset, no deps."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ConversationState(Enum):
    IDLE = "idle"
    AWAITING_POLL_INTENT = "awaiting_poll_intent"
    AWAITING_POLL_OPTION_SELECTION = "awaiting_poll_option_selection"
    AWAITING_COLUMN_CONFIRMATION = "awaiting_column_confirmation"
    AWAITING_NEW_COLUMN_CHOICE = "awaiting_new_column_choice"
    AWAITING_COLUMN_SELECTION = "awaiting_column_selection"
    AWAITING_DATE_NAME = "awaiting_date_name"
    AWAITING_COST = "awaiting_cost"
    AWAITING_USERNAMES = "awaiting_usernames"
    AWAITING_PLAYER_COUNT_CONFIRMATION = "awaiting_player_count_confirmation"
    AWAITING_PLAYER_COUNT = "awaiting_player_count"
    AWAITING_OVERRIDE_CONFIRMATION = "awaiting_override_confirmation"


@dataclass(frozen=True)
class ColumnCandidate:
    column: str            # column letter, e.g. "G"
    label: str             # header value in the label row


@dataclass
class ColumnMetadata:
    label: str | None = None
    cost: float | None = None
    headcount: int | None = None


@dataclass(frozen=True)
class Conflict:
    identity: str
    existing_value: Any


@dataclass(frozen=True)
class CellUpdate:
    cell: str              # A1 cell reference without sheet, e.g. "F7"
    value: Any


@dataclass
class WriteReport:
    column: str
    updated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    unmatched: list[str] = field(default_factory=list)

    @property
    def updated_count(self) -> int:
        return len(self.updated)


@dataclass
class PollRecord:
    question: str
    options: tuple[str, ...]
    ballot: dict[int, set[str]] = field(default_factory=dict)


@dataclass
class ConversationSession:
    """Conversation-scoped state. Lives for the process lifetime, reset after every cycle."""

    state: ConversationState = ConversationState.IDLE
    pending_identities: list[str] = field(default_factory=list)
    target_column: str | None = None
    is_new_column: bool = False
    column_label: str | None = None
    column_cost: float | None = None
    column_headcount: int | None = None
    matched_rows: dict[str, int] = field(default_factory=dict)
    existing_values: dict[str, Any] = field(default_factory=dict)
    candidate_columns: list[ColumnCandidate] = field(default_factory=list)
    active_poll_ref: str | None = None

    def reset(self) -> None:
        self.state = ConversationState.IDLE
        self.pending_identities = []
        self.target_column = None
        self.is_new_column = False
        self.column_label = None
        self.column_cost = None
        self.column_headcount = None
        self.matched_rows = {}
        self.existing_values = {}
        self.candidate_columns = []
        self.active_poll_ref = None


# -----------------------------
# Inbound events
# -----------------------------

@dataclass(frozen=True)
class TextMessage:
    conversation_id: str
    text: str
    sender: str | None = None    # "@username" when the transport knows it


@dataclass(frozen=True)
class PollVoteChanged:
    conversation_id: str
    poll_id: str
    voter: str                   # "@username"
    option_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class ForwardedPoll:
    conversation_id: str
    poll_id: str


Event = TextMessage | PollVoteChanged | ForwardedPoll
