"""Failure taxonomy shared by the channel, parser and reconcilers.

Every failure carries a short classification plus the verbatim remote text
(when there is any) so callers can diagnose host-side problems without
re-running the command. Nothing here is retried automatically.
"""
from __future__ import annotations

from collections.abc import Sequence


class DokkuformError(RuntimeError):
    """Base class for reconciliation failures."""

    classification = "error"

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        self.message = message
        self.detail = (detail or "").strip() or None
        text = f"{self.classification}: {message}"
        if self.detail:
            text = f"{text}: {self.detail}"
        super().__init__(text)


class TransportError(DokkuformError):
    """The command channel could not complete the round trip."""

    classification = "transport failure"


class ParseError(DokkuformError):
    """Remote output did not match the expected grammar."""

    classification = "parse failure"


class PreconditionError(DokkuformError):
    """The reconciler refused to mutate because a precondition did not hold."""

    classification = "precondition violation"

    def __init__(self, message: str, *, field: str | None = None, detail: str | None = None) -> None:
        self.field = field
        if field is not None:
            message = f"{field}: {message}"
        super().__init__(message, detail=detail)


class RemoteCommandError(DokkuformError):
    """The host reported a failure that matched no recognised signal."""

    classification = "remote failure"

    def __init__(
        self,
        message: str,
        *,
        command: str,
        exit_status: int | None = None,
        stderr: str = "",
    ) -> None:
        self.command = command
        self.exit_status = exit_status
        self.stderr = stderr
        prefix = f"{message} ({command!r}"
        if exit_status is not None:
            prefix = f"{prefix}, exit {exit_status}"
        super().__init__(f"{prefix})", detail=stderr)


class RenewalJobError(RemoteCommandError):
    """Certificates were enabled but the renewal job could not be installed."""

    classification = "renewal job failure"


class PartialUpdateError(RemoteCommandError):
    """A two-step update failed after its first step already changed the host."""

    classification = "partial update"

    def __init__(
        self,
        message: str,
        *,
        command: str,
        completed_steps: Sequence[str],
        exit_status: int | None = None,
        stderr: str = "",
    ) -> None:
        self.completed_steps = tuple(completed_steps)
        done = ", ".join(self.completed_steps) or "none"
        super().__init__(
            f"{message}; already applied: {done}",
            command=command,
            exit_status=exit_status,
            stderr=stderr,
        )


__all__ = [
    "DokkuformError",
    "ParseError",
    "PartialUpdateError",
    "PreconditionError",
    "RemoteCommandError",
    "RenewalJobError",
    "TransportError",
]
