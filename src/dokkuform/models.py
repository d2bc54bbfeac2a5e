"""Entity references and reconciled state tuples.

A reconciled state is exactly what the front-end persists after a successful
operation; it is structurally identical to the desired tuple handed in. The
identity of every entity is ``(kind, app_name, key)`` compared by exact,
case-sensitive string match.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import ParseError


class EntityKind(str, Enum):
    """Kinds of remote entities managed by the reconcilers."""

    DOMAIN = "domain"
    LETSENCRYPT = "letsencrypt"
    SERVICE_LINK = "service_link"


@dataclass(frozen=True, slots=True)
class EntityRef:
    """Immutable identity of a managed entity."""

    kind: EntityKind
    app_name: str
    key: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"kind": self.kind.value, "app_name": self.app_name, "key": self.key}


@dataclass(frozen=True, slots=True)
class DomainState:
    """A domain bound to an application."""

    app_name: str
    domain: str

    kind = EntityKind.DOMAIN
    identity_fields = ("app_name",)

    @property
    def ref(self) -> EntityRef:
        return EntityRef(self.kind, self.app_name, self.domain)

    def to_dict(self) -> dict[str, object]:
        return {"app_name": self.app_name, "domain": self.domain}

    @classmethod
    def from_import_id(cls, identifier: str) -> DomainState:
        """Parse ``"<app> <domain>"``."""
        app_name, domain = _split_import_id(identifier, cls.kind, counts=(2,))
        return cls(app_name=app_name, domain=domain)


@dataclass(frozen=True, slots=True)
class LetsencryptState:
    """Let's Encrypt certificate lifecycle for an application."""

    app_name: str

    kind = EntityKind.LETSENCRYPT
    identity_fields = ("app_name",)

    @property
    def ref(self) -> EntityRef:
        return EntityRef(self.kind, self.app_name)

    def to_dict(self) -> dict[str, object]:
        return {"app_name": self.app_name}

    @classmethod
    def from_import_id(cls, identifier: str) -> LetsencryptState:
        """Parse ``"<app>"``."""
        (app_name,) = _split_import_id(identifier, cls.kind, counts=(1,))
        return cls(app_name=app_name)


@dataclass(frozen=True, slots=True)
class ServiceLinkState:
    """A datastore service linked to an application.

    ``alias`` is the environment variable prefix (``ALIAS_URL``) under which
    the service URL is exposed; ``None`` lets Dokku choose its default.
    """

    app_name: str
    service_name: str
    alias: str | None = None

    kind = EntityKind.SERVICE_LINK
    identity_fields = ("app_name", "service_name")

    @property
    def ref(self) -> EntityRef:
        return EntityRef(self.kind, self.app_name, self.service_name)

    def to_dict(self) -> dict[str, object]:
        return {"app_name": self.app_name, "service_name": self.service_name, "alias": self.alias}

    @classmethod
    def from_import_id(cls, identifier: str) -> ServiceLinkState:
        """Parse ``"<app> <service> [ALIAS]"``."""
        parts = _split_import_id(identifier, cls.kind, counts=(2, 3))
        alias = parts[2] if len(parts) == 3 else None
        return cls(app_name=parts[0], service_name=parts[1], alias=alias)


ReconciledState = DomainState | LetsencryptState | ServiceLinkState


def changed_identity_fields(prior: ReconciledState, desired: ReconciledState) -> list[str]:
    """Return the identity fields that differ between *prior* and *desired*."""
    if type(prior) is not type(desired):
        raise TypeError(f"Cannot compare {type(prior).__name__} with {type(desired).__name__}")
    return [
        name for name in prior.identity_fields if getattr(prior, name) != getattr(desired, name)
    ]


def _split_import_id(identifier: str, kind: EntityKind, *, counts: tuple[int, ...]) -> list[str]:
    parts = identifier.split(" ")
    if len(parts) not in counts or not all(parts):
        expected = " or ".join(str(count) for count in counts)
        raise ParseError(
            f"Import identifier for {kind.value} must have {expected} space-separated field(s)",
            detail=repr(identifier),
        )
    return parts


__all__ = [
    "DomainState",
    "EntityKind",
    "EntityRef",
    "LetsencryptState",
    "ReconciledState",
    "ServiceLinkState",
    "changed_identity_fields",
]
