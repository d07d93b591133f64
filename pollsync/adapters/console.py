"""Local console transport for driving the conversation from a terminal.

Lines starting with ":" simulate platform events:
  :vote <poll_id> @user [option numbers...]   (no numbers retracts the vote)
  :forward <poll_id>
  :quit
"""

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from pollsync.adapters.base import ChatTransport
from pollsync.models import Event, ForwardedPoll, PollVoteChanged, TextMessage

logger = logging.getLogger(__name__)

CONSOLE_CONVERSATION = "console"


def parse_console_line(line: str, sender: str = "@operator") -> Event | None:
    """Translate one typed line to an event. Returns None for blank or malformed lines."""
    text = line.strip()
    if not text:
        return None
    if not text.startswith(":"):
        return TextMessage(conversation_id=CONSOLE_CONVERSATION, text=text, sender=sender)

    words = text[1:].split()
    if not words:
        return None
    verb, args = words[0], words[1:]
    if verb == "forward" and len(args) == 1:
        return ForwardedPoll(conversation_id=CONSOLE_CONVERSATION, poll_id=args[0])
    if verb == "vote" and len(args) >= 2:
        try:
            option_ids = tuple(int(a) - 1 for a in args[2:])
        except ValueError:
            return None
        voter = args[1] if args[1].startswith("@") else f"@{args[1]}"
        return PollVoteChanged(
            conversation_id=CONSOLE_CONVERSATION,
            poll_id=args[0],
            voter=voter,
            option_ids=option_ids,
        )
    return None


class ConsoleTransport(ChatTransport):
    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(legacy_windows=False)
        self._poll_ids = itertools.count(1)
        self._closed = False

    def name(self) -> str:
        return "console"

    async def events(self) -> AsyncIterator[Event]:
        self._console.print("[dim]Type /help to start, :quit to exit.[/dim]")
        while not self._closed:
            try:
                line = await asyncio.to_thread(self._console.input, "[bold green]you>[/bold green] ")
            except EOFError:
                break
            if line.strip() == ":quit":
                break
            event = parse_console_line(line)
            if event is None:
                if line.strip():
                    self._console.print("[yellow]Unrecognized console command[/yellow]")
                continue
            yield event

    async def deliver(self, conversation_id: str, text: str) -> None:
        self._console.print(Panel(Text(text), title="[bold cyan]pollsync[/bold cyan]", border_style="dim"))

    async def create_poll(self, conversation_id: str, question: str, options: Sequence[str]) -> str:
        poll_id = f"poll{next(self._poll_ids)}"
        body = "\n".join(f"{i}. {option}" for i, option in enumerate(options, start=1))
        self._console.print(
            Panel(
                Text(f"{question}\n\n{body}"),
                title=f"[bold]Poll {poll_id}[/bold]",
                subtitle=f":vote {poll_id} @name <number> | :forward {poll_id}",
                border_style="magenta",
            )
        )
        return poll_id

    async def ping(self) -> None:
        return None

    async def close(self) -> None:
        self._closed = True
