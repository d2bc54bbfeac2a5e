"""Shared create/read/update/delete contract for reconcilers."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar, Generic, TypeVar

from ..commands import DokkuCommands
from ..errors import PreconditionError
from ..models import EntityKind, ReconciledState, changed_identity_fields

StateT = TypeVar("StateT", bound=ReconciledState)


class Reconciler(ABC, Generic[StateT]):
    """Idempotent state machine for one entity kind.

    Every operation re-queries the host before deciding; nothing is cached
    between calls. Mutations are only issued once the matching fact has been
    confirmed (absent before create, present before delete or update).
    """

    kind: ClassVar[EntityKind]
    state_type: ClassVar[type]

    def __init__(self, commands: DokkuCommands) -> None:
        self.commands = commands

    @abstractmethod
    def create(self, desired: StateT) -> StateT:
        """Bring the entity into existence and return the reconciled state."""

    @abstractmethod
    def read(self, current: StateT) -> StateT | None:
        """Return the refreshed state, or ``None`` when the entity vanished."""

    @abstractmethod
    def update(self, prior: StateT, desired: StateT) -> StateT:
        """Move the entity from *prior* to *desired*."""

    @abstractmethod
    def delete(self, current: StateT) -> None:
        """Remove the entity; an already-absent entity is a no-op."""

    def import_state(self, identifier: str) -> StateT:
        """Rebuild a state tuple from an import identifier without querying the host."""
        return self.state_type.from_import_id(identifier)

    def ensure_identity_unchanged(self, prior: StateT, desired: StateT) -> None:
        """Reject updates that would change an identity field."""
        changed = changed_identity_fields(prior, desired)
        if changed:
            field = changed[0]
            raise PreconditionError(
                f"cannot change from {getattr(prior, field)!r} to {getattr(desired, field)!r}; "
                "destroy and recreate the resource instead",
                field=field,
            )


__all__ = ["Reconciler"]
