class WorkspaceError(Exception):
    """Base class for errors raised by the workspace store."""


class ValidationError(WorkspaceError):
    """A name or other field was empty or malformed."""


class NotFound(WorkspaceError):
    """An operation referenced an identifier that does not exist."""

    def __init__(self, kind: str, ident: int) -> None:
        super().__init__(f"{kind} {ident} not found")
        self.kind = kind
        self.ident = ident


class RequestInFlight(Exception):
    """A request is already being sent from this editor."""
