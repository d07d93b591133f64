"""Error taxonomy shared by the engine and its collaborators."""


class StoreUnavailable(Exception):
    """Raised when a tabular-store call fails."""

    def __init__(self, action: str, message: str) -> None:
        self.action = action
        super().__init__(f"[{action}] {message}")
        self.cause = message


class TransportError(Exception):
    """Raised when a chat-transport call fails."""

    def __init__(self, method: str, message: str) -> None:
        self.method = method
        super().__init__(f"[{method}] {message}")


class ValidationFailed(ValueError):
    """User input does not parse per the current state's grammar."""


class SessionDataLost(RuntimeError):
    """A required session field is missing when a later state is reached."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Session field missing: {field_name}")
