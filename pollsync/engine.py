"""Conversation orchestration: the per-conversation state machine.

Every inbound event is handled to completion and yields at most one reply.
Dispatch goes through a single transition table keyed by ConversationState,
so exactly one handler owns each state.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from config.config_loader import SheetLayout
from pollsync import messages
from pollsync.adapters.base import ChatTransport, TabularStore
from pollsync.columns import Ambiguous, ColumnResolver, Found, explicit_column, is_column_token, next_column
from pollsync.errors import SessionDataLost, StoreUnavailable, TransportError, ValidationFailed
from pollsync.guard import OverrideGuard
from pollsync.matcher import IdentityMatcher, parse_identities
from pollsync.metadata import MetadataCollector
from pollsync.models import (
    ColumnCandidate,
    ConversationSession,
    ConversationState,
    Event,
    ForwardedPoll,
    PollRecord,
    PollVoteChanged,
    TextMessage,
)
from pollsync.parsing import (
    parse_cost,
    parse_count,
    parse_label,
    parse_ordinal,
    parse_poll_command,
    parse_yes_no,
    split_command,
)
from pollsync.votes import PollRegistry, VoteAggregator
from pollsync.writer import WriteCoordinator

logger = logging.getLogger(__name__)

S = ConversationState
T = TypeVar("T")

# Reply fragments collected while handling one event
Parts = list[str]
StateHandler = Callable[[ConversationSession, str, Parts], Awaitable[None]]
CommandHandler = Callable[[ConversationSession, TextMessage, str, Parts], Awaitable[None]]

_UPDATE_INTENTS = {"1", "update", "update sheet"}
_VIEW_INTENTS = {"2", "view", "view voters"}


def _require(value: T | None, field_name: str) -> T:
    """Return value, or raise SessionDataLost when it is missing or empty."""
    if value is None or (isinstance(value, (list, dict)) and not value):
        raise SessionDataLost(field_name)
    return value


class ConversationEngine:
    """Owns one ConversationSession per conversation and drives it through the flow."""

    def __init__(
        self,
        store: TabularStore,
        layout: SheetLayout,
        registry: PollRegistry,
        transport: ChatTransport | None = None,
    ) -> None:
        self._layout = layout
        self._registry = registry
        self._transport = transport
        self._aggregator = VoteAggregator(registry)
        self._resolver = ColumnResolver(store, layout)
        self._metadata = MetadataCollector(store, layout)
        self._matcher = IdentityMatcher(store, layout)
        guard = OverrideGuard(store, layout)
        self._guard = guard
        self._writer = WriteCoordinator(store, layout, guard)
        self._sessions: dict[str, ConversationSession] = {}

        self._transitions: dict[ConversationState, StateHandler] = {
            S.IDLE: self._on_idle,
            S.AWAITING_POLL_INTENT: self._on_poll_intent,
            S.AWAITING_POLL_OPTION_SELECTION: self._on_poll_option_selection,
            S.AWAITING_COLUMN_CONFIRMATION: self._on_column_confirmation,
            S.AWAITING_NEW_COLUMN_CHOICE: self._on_new_column_choice,
            S.AWAITING_COLUMN_SELECTION: self._on_column_selection,
            S.AWAITING_DATE_NAME: self._on_date_name,
            S.AWAITING_COST: self._on_cost,
            S.AWAITING_USERNAMES: self._on_usernames,
            S.AWAITING_PLAYER_COUNT_CONFIRMATION: self._on_player_count_confirmation,
            S.AWAITING_PLAYER_COUNT: self._on_player_count,
            S.AWAITING_OVERRIDE_CONFIRMATION: self._on_override_confirmation,
        }
        self._commands: dict[str, CommandHandler] = {
            "start": self._cmd_start,
            "help": self._cmd_help,
            "update": self._cmd_update,
            "cancel": self._cmd_cancel,
            "abort": self._cmd_cancel,
            "poll": self._cmd_poll,
        }

    @property
    def aggregator(self) -> VoteAggregator:
        return self._aggregator

    def session(self, conversation_id: str) -> ConversationSession:
        """Return the conversation's session, creating it on first use."""
        session = self._sessions.get(conversation_id)
        if session is None:
            session = ConversationSession()
            self._sessions[conversation_id] = session
        return session

    async def handle(self, event: Event) -> str | None:
        """Process one event and return the reply text, if any."""
        if isinstance(event, PollVoteChanged):
            self._aggregator.apply(event)
            return None

        session = self.session(event.conversation_id)
        before = session.state
        parts: Parts = []
        try:
            if isinstance(event, ForwardedPoll):
                self._on_forwarded_poll(session, event, parts)
            else:
                await self._on_text(session, event, parts)
        except StoreUnavailable as exc:
            logger.warning("Conversation %s: store call failed: %s", event.conversation_id, exc)
            parts.append(messages.store_error(exc))
            session.reset()
        except SessionDataLost as exc:
            logger.error("Conversation %s in %s: %s", event.conversation_id, before.value, exc)
            parts.append(messages.ERR_SESSION_DATA_LOST)
            session.reset()

        if session.state is not before:
            logger.debug(
                "Conversation %s: %s -> %s", event.conversation_id, before.value, session.state.value
            )
        return "\n\n".join(parts) if parts else None

    async def _on_text(self, session: ConversationSession, event: TextMessage, parts: Parts) -> None:
        command = split_command(event.text)
        if command is not None:
            name, args = command
            handler = self._commands.get(name)
            if handler is None:
                parts.append(f"❓ Unknown command /{name}. Use /help.")
                return
            await handler(session, event, args, parts)
            return

        try:
            await self._transitions[session.state](session, event.text.strip(), parts)
        except ValidationFailed as exc:
            parts.append(str(exc))

    # -------------------------------------------------
    # Commands
    # -------------------------------------------------

    async def _cmd_start(self, session: ConversationSession, event: TextMessage, args: str, parts: Parts) -> None:
        parts.append(messages.WELCOME_TEXT)

    async def _cmd_help(self, session: ConversationSession, event: TextMessage, args: str, parts: Parts) -> None:
        parts.append(messages.HELP_TEXT)

    async def _cmd_update(self, session: ConversationSession, event: TextMessage, args: str, parts: Parts) -> None:
        session.reset()
        await self._start_detection(session, parts)

    async def _cmd_cancel(self, session: ConversationSession, event: TextMessage, args: str, parts: Parts) -> None:
        session.reset()
        verb = "aborted" if event.text.strip().lower().startswith("/abort") else "cancelled"
        parts.append(messages.cancelled(verb))

    async def _cmd_poll(self, session: ConversationSession, event: TextMessage, args: str, parts: Parts) -> None:
        try:
            question, options = parse_poll_command(args)
        except ValidationFailed as exc:
            parts.append(str(exc))
            return
        if self._transport is None:
            parts.append(messages.ERR_NO_POLL_SUPPORT)
            return
        try:
            poll_id = await self._transport.create_poll(event.conversation_id, question, options)
        except TransportError as exc:
            logger.error("Error creating poll: %s", exc)
            parts.append(messages.poll_creation_failed(exc))
            return
        self._registry.register(poll_id, question, options)
        logger.info(
            "Poll created: id %s, question %r, options %s, chat %s, user %s",
            poll_id,
            question,
            ", ".join(options),
            event.conversation_id,
            event.sender or "unknown",
        )
        parts.append(messages.MSG_POLL_CREATED)

    # -------------------------------------------------
    # Poll path
    # -------------------------------------------------

    def _on_forwarded_poll(self, session: ConversationSession, event: ForwardedPoll, parts: Parts) -> None:
        record = self._registry.get(event.poll_id)
        if record is None:
            parts.append(messages.ERR_UNTRACKED_POLL)
            return
        session.reset()
        session.active_poll_ref = event.poll_id
        session.state = S.AWAITING_POLL_INTENT
        parts.append(messages.poll_menu(record))

    def _active_poll(self, session: ConversationSession, parts: Parts) -> tuple[str, PollRecord] | None:
        poll_id = _require(session.active_poll_ref, "active_poll_ref")
        record = self._registry.get(poll_id)
        if record is None:
            parts.append(messages.ERR_POLL_NOT_FOUND)
            session.reset()
            return None
        return poll_id, record

    async def _on_poll_intent(self, session: ConversationSession, text: str, parts: Parts) -> None:
        choice = text.lower()
        if choice not in _UPDATE_INTENTS and choice not in _VIEW_INTENTS:
            raise ValidationFailed(messages.ERR_POLL_INTENT)

        active = self._active_poll(session, parts)
        if active is None:
            return
        _, record = active

        if choice in _UPDATE_INTENTS:
            session.state = S.AWAITING_POLL_OPTION_SELECTION
            parts.append(messages.poll_option_prompt(record))
        else:
            parts.append(messages.poll_voters(record))
            session.reset()

    async def _on_poll_option_selection(self, session: ConversationSession, text: str, parts: Parts) -> None:
        active = self._active_poll(session, parts)
        if active is None:
            return
        poll_id, record = active

        index = parse_ordinal(text, len(record.options))
        voters = sorted(self._aggregator.voters_for(poll_id, index), key=str.lower)
        if not voters:
            parts.append(messages.no_voters())
            session.reset()
            return

        session.pending_identities = voters
        session.active_poll_ref = None
        parts.append(messages.option_selected(record.options[index], voters))
        await self._start_detection(session, parts)

    # -------------------------------------------------
    # Column resolution
    # -------------------------------------------------

    async def _start_detection(self, session: ConversationSession, parts: Parts) -> None:
        candidate = await self._resolver.detect_last_column()
        if candidate is None:
            session.target_column = self._resolver.allocate_first_column()
            session.state = S.AWAITING_NEW_COLUMN_CHOICE
            parts.append(messages.no_date_columns(session.target_column))
            return

        session.target_column = candidate.column
        session.candidate_columns = [candidate]
        session.state = S.AWAITING_COLUMN_CONFIRMATION
        parts.append(messages.column_detected(candidate))

    async def _adopt_column(self, session: ConversationSession, candidate: ColumnCandidate | str, parts: Parts) -> None:
        session.target_column = candidate if isinstance(candidate, str) else candidate.column
        session.is_new_column = False
        session.candidate_columns = []
        await self._collect_metadata(session, parts)

    def _in_scan_range(self, column: str) -> bool:
        return is_column_token(column, self._layout.first_data_column, self._layout.scan_end_column)

    async def _on_column_confirmation(self, session: ConversationSession, text: str, parts: Parts) -> None:
        # "col N" reaches the N and Y columns, which a bare letter answers yes/no
        explicit = explicit_column(text)
        if explicit is not None:
            if not self._in_scan_range(explicit):
                raise ValidationFailed(
                    messages.column_out_of_range(
                        explicit, self._layout.first_data_column, self._layout.scan_end_column
                    )
                )
            await self._adopt_column(session, explicit, parts)
            return

        answer = parse_yes_no(text)
        if answer is True:
            _require(session.target_column, "target_column")
            session.candidate_columns = []
            await self._collect_metadata(session, parts)
            return
        if answer is False:
            column = next_column(_require(session.target_column, "target_column"))
            session.target_column = column
            session.candidate_columns = []
            session.state = S.AWAITING_NEW_COLUMN_CHOICE
            parts.append(messages.create_column_prompt(column))
            return

        # Letters past the scan range (e.g. "OCT") fall through to label search
        if self._in_scan_range(text):
            await self._adopt_column(session, text.upper(), parts)
            return

        result = await self._resolver.search_by_label(text)
        if isinstance(result, Found):
            await self._adopt_column(session, result.candidate, parts)
        elif isinstance(result, Ambiguous):
            session.candidate_columns = list(result.candidates)
            session.state = S.AWAITING_COLUMN_SELECTION
            parts.append(messages.column_choices(result.candidates))
        else:
            raise ValidationFailed(messages.column_not_found(text))

    async def _on_column_selection(self, session: ConversationSession, text: str, parts: Parts) -> None:
        candidates = _require(session.candidate_columns, "candidate_columns")
        if text.isdigit():
            index = parse_ordinal(text, len(candidates))
            await self._adopt_column(session, candidates[index], parts)
            return
        for candidate in candidates:
            if candidate.column == text.upper():
                await self._adopt_column(session, candidate, parts)
                return
        raise ValidationFailed(messages.column_choices(candidates))

    async def _on_new_column_choice(self, session: ConversationSession, text: str, parts: Parts) -> None:
        answer = parse_yes_no(text)
        if answer is None:
            raise ValidationFailed(messages.ERR_INVALID_YES_NO)
        if not answer:
            session.reset()
            parts.append(messages.cancelled())
            return
        column = _require(session.target_column, "target_column")
        session.is_new_column = True
        session.state = S.AWAITING_DATE_NAME
        parts.append(messages.date_name_prompt(column, missing=False))

    # -------------------------------------------------
    # Metadata phase
    # -------------------------------------------------

    async def _collect_metadata(self, session: ConversationSession, parts: Parts) -> None:
        column = _require(session.target_column, "target_column")
        metadata = await self._metadata.read_metadata(column)

        if metadata.label is None:
            session.state = S.AWAITING_DATE_NAME
            parts.append(messages.date_name_prompt(column, missing=True))
            return
        session.column_label = metadata.label

        if metadata.cost is None:
            session.state = S.AWAITING_COST
            parts.append(messages.cost_prompt(column))
            return
        session.column_cost = metadata.cost

        # Headcount is only asked for after matching, when the matched count is known
        if metadata.headcount is not None:
            session.column_headcount = metadata.headcount

        if session.pending_identities:
            await self._match_identities(session, parts)
            return

        session.state = S.AWAITING_USERNAMES
        parts.append(messages.usernames_prompt(session))

    async def _on_date_name(self, session: ConversationSession, text: str, parts: Parts) -> None:
        label = parse_label(text)
        column = _require(session.target_column, "target_column")
        await self._metadata.write_label(column, label)
        session.column_label = label
        await self._collect_metadata(session, parts)

    async def _on_cost(self, session: ConversationSession, text: str, parts: Parts) -> None:
        cost = parse_cost(text)
        column = _require(session.target_column, "target_column")
        await self._metadata.write_cost(column, cost)
        session.column_cost = cost
        await self._collect_metadata(session, parts)

    # -------------------------------------------------
    # Identity matching and headcount
    # -------------------------------------------------

    async def _on_usernames(self, session: ConversationSession, text: str, parts: Parts) -> None:
        identities = parse_identities(text)
        if not identities:
            raise ValidationFailed(messages.ERR_NO_USERNAMES)
        _require(session.target_column, "target_column")
        session.pending_identities = identities
        await self._match_identities(session, parts)

    async def _match_identities(self, session: ConversationSession, parts: Parts) -> None:
        _require(session.target_column, "target_column")
        identities = _require(session.pending_identities, "pending_identities")

        matched = await self._matcher.match(identities)
        if not matched:
            parts.append(messages.no_matches(identities, self._layout.identity_column))
            session.reset()
            return
        session.matched_rows = matched

        if session.column_headcount is not None:
            await self._check_overrides(session, parts)
            return

        session.state = S.AWAITING_PLAYER_COUNT_CONFIRMATION
        parts.append(messages.headcount_confirmation(len(matched)))

    async def _on_player_count_confirmation(self, session: ConversationSession, text: str, parts: Parts) -> None:
        answer = parse_yes_no(text)
        if answer is None:
            raise ValidationFailed(messages.ERR_INVALID_YES_NO)
        matched = _require(session.matched_rows, "matched_rows")
        if not answer:
            session.state = S.AWAITING_PLAYER_COUNT
            parts.append(messages.HEADCOUNT_PROMPT)
            return
        await self._set_headcount(session, len(matched), parts)

    async def _on_player_count(self, session: ConversationSession, text: str, parts: Parts) -> None:
        count = parse_count(text)
        _require(session.matched_rows, "matched_rows")
        await self._set_headcount(session, count, parts)

    async def _set_headcount(self, session: ConversationSession, count: int, parts: Parts) -> None:
        column = _require(session.target_column, "target_column")
        await self._metadata.write_headcount(column, count)
        session.column_headcount = count
        await self._check_overrides(session, parts)

    # -------------------------------------------------
    # Override gate and write
    # -------------------------------------------------

    async def _check_overrides(self, session: ConversationSession, parts: Parts) -> None:
        column = _require(session.target_column, "target_column")
        matched = _require(session.matched_rows, "matched_rows")

        conflicts = await self._guard.find_conflicts(matched, column)
        if not conflicts:
            await self._write(session, parts, override=True, skip=[])
            return

        session.existing_values = {c.identity: c.existing_value for c in conflicts}
        session.state = S.AWAITING_OVERRIDE_CONFIRMATION
        parts.append(messages.conflicts_prompt(column, conflicts))

    async def _on_override_confirmation(self, session: ConversationSession, text: str, parts: Parts) -> None:
        answer = parse_yes_no(text)
        if answer is None:
            raise ValidationFailed(messages.ERR_INVALID_YES_NO)
        if answer:
            await self._write(session, parts, override=True, skip=[])
        else:
            await self._write(session, parts, override=False, skip=list(session.existing_values))

    async def _write(self, session: ConversationSession, parts: Parts, *, override: bool, skip: list[str]) -> None:
        column = _require(session.target_column, "target_column")
        matched = _require(session.matched_rows, "matched_rows")
        report = await self._writer.write(
            matched,
            column,
            session.pending_identities,
            override=override,
            skip=skip,
        )
        parts.append(messages.update_result(report))
        session.reset()

    async def _on_idle(self, session: ConversationSession, text: str, parts: Parts) -> None:
        parts.append(messages.MSG_IDLE_HINT)
