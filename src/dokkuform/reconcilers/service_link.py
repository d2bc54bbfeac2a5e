"""Reconciler for datastore services linked to an application.

Works with any Dokku "simple service" plugin that exposes the
``<type>:exists``, ``<type>:linked``, ``<type>:link`` and ``<type>:unlink``
subcommands (mariadb, mysql, postgres, redis, nats, ...).
"""
from __future__ import annotations

import logging

from ..commands import DokkuCommands
from ..errors import PartialUpdateError, PreconditionError, RemoteCommandError
from ..models import EntityKind, ServiceLinkState
from .base import Reconciler

LOGGER = logging.getLogger(__name__)


class ServiceLinkReconciler(Reconciler[ServiceLinkState]):
    """Link and unlink one service of ``service_type`` to an application."""

    kind = EntityKind.SERVICE_LINK
    state_type = ServiceLinkState

    def __init__(self, commands: DokkuCommands, service_type: str) -> None:
        super().__init__(commands)
        self.service_type = service_type

    def create(self, desired: ServiceLinkState) -> ServiceLinkState:
        if not self.commands.service_exists(self.service_type, desired.service_name):
            raise PreconditionError(
                f"{self.service_type} service {desired.service_name!r} does not exist",
                field="service_name",
            )
        if self._linked(desired):
            raise PreconditionError(
                f"{self.service_type} service {desired.service_name!r} already linked "
                f"to app {desired.app_name!r}",
                field="service_name",
            )
        self.commands.service_link(
            self.service_type, desired.service_name, desired.app_name, alias=desired.alias
        )
        return desired

    def read(self, current: ServiceLinkState) -> ServiceLinkState | None:
        if not self.commands.service_exists(self.service_type, current.service_name):
            LOGGER.info("%s service %s no longer exists", self.service_type, current.service_name)
            return None
        if not self._linked(current):
            return None
        return current

    def update(self, prior: ServiceLinkState, desired: ServiceLinkState) -> ServiceLinkState:
        """Change the alias by unlinking and relinking the service.

        Like domain moves this is best-effort: a failed relink is reported as
        :class:`PartialUpdateError` with the service left unlinked.
        """
        self.ensure_identity_unchanged(prior, desired)
        if (prior.alias or None) == (desired.alias or None):
            return desired
        if not self._linked(prior):
            raise PreconditionError(
                f"{self.service_type} service {prior.service_name!r} is not linked "
                f"to app {prior.app_name!r}",
                field="service_name",
            )
        self.commands.service_unlink(self.service_type, prior.service_name, prior.app_name)
        try:
            self.commands.service_link(
                self.service_type, desired.service_name, desired.app_name, alias=desired.alias
            )
        except RemoteCommandError as exc:
            raise PartialUpdateError(
                f"Relinking {desired.service_name!r} with alias {desired.alias!r} failed",
                command=exc.command,
                completed_steps=[f"unlinked {prior.service_name} from {prior.app_name}"],
                exit_status=exc.exit_status,
                stderr=exc.stderr,
            ) from exc
        return desired

    def delete(self, current: ServiceLinkState) -> None:
        if not self.commands.service_exists(self.service_type, current.service_name):
            LOGGER.info("%s service %s already gone", self.service_type, current.service_name)
            return
        if not self._linked(current):
            return
        self.commands.service_unlink(self.service_type, current.service_name, current.app_name)

    def _linked(self, state: ServiceLinkState) -> bool:
        return self.commands.service_linked(self.service_type, state.service_name, state.app_name)


__all__ = ["ServiceLinkReconciler"]
