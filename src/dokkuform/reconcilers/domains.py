"""Reconciler for domains bound to an application."""
from __future__ import annotations

import logging

from ..errors import PartialUpdateError, PreconditionError, RemoteCommandError
from ..models import DomainState, EntityKind
from .base import Reconciler

LOGGER = logging.getLogger(__name__)


class DomainReconciler(Reconciler[DomainState]):
    """Manage ``domains:add`` / ``domains:remove`` for a single vhost."""

    kind = EntityKind.DOMAIN
    state_type = DomainState

    def create(self, desired: DomainState) -> DomainState:
        vhosts = self._vhosts(desired.app_name)
        if vhosts is None:
            raise PreconditionError(
                f"application {desired.app_name!r} does not exist", field="app_name"
            )
        if desired.domain in vhosts:
            raise PreconditionError(
                f"{desired.domain!r} already exists for app {desired.app_name!r}",
                field="domain",
            )
        self.commands.domains_add(desired.app_name, desired.domain)
        return desired

    def read(self, current: DomainState) -> DomainState | None:
        vhosts = self._vhosts(current.app_name)
        if not vhosts or current.domain not in vhosts:
            LOGGER.info("Domain %s is no longer bound to %s", current.domain, current.app_name)
            return None
        return current

    def update(self, prior: DomainState, desired: DomainState) -> DomainState:
        """Move the binding to a new domain.

        This is a best-effort move: the old domain is removed before the new
        one is added and nothing is rolled back if the add fails. Such a
        failure raises :class:`PartialUpdateError` and leaves the host with
        neither domain bound.
        """
        self.ensure_identity_unchanged(prior, desired)
        if prior.domain == desired.domain:
            return desired

        vhosts = self._vhosts(desired.app_name)
        if vhosts is None:
            raise PreconditionError(
                f"application {desired.app_name!r} does not exist", field="app_name"
            )
        if desired.domain in vhosts:
            raise PreconditionError(
                f"{desired.domain!r} already exists for app {desired.app_name!r}",
                field="domain",
            )

        completed: list[str] = []
        if prior.domain in vhosts:
            self.commands.domains_remove(prior.app_name, prior.domain)
            completed.append(f"removed {prior.domain}")
        try:
            self.commands.domains_add(desired.app_name, desired.domain)
        except RemoteCommandError as exc:
            if not completed:
                raise
            raise PartialUpdateError(
                f"Adding {desired.domain!r} failed after {prior.domain!r} was removed",
                command=exc.command,
                completed_steps=completed,
                exit_status=exc.exit_status,
                stderr=exc.stderr,
            ) from exc
        return desired

    def delete(self, current: DomainState) -> None:
        vhosts = self._vhosts(current.app_name)
        if not vhosts or current.domain not in vhosts:
            LOGGER.info("Domain %s already absent from %s", current.domain, current.app_name)
            return
        self.commands.domains_remove(current.app_name, current.domain)

    def _vhosts(self, app: str) -> frozenset[str] | None:
        return self.commands.domain_vhosts(app)


__all__ = ["DomainReconciler"]
