"""Reconciler for the Let's Encrypt certificate lifecycle of an application."""
from __future__ import annotations

import logging

from ..errors import PreconditionError
from ..models import EntityKind, LetsencryptState
from .base import Reconciler

LOGGER = logging.getLogger(__name__)


class LetsencryptReconciler(Reconciler[LetsencryptState]):
    """Enable or disable Let's Encrypt and keep the renewal job installed."""

    kind = EntityKind.LETSENCRYPT
    state_type = LetsencryptState

    def create(self, desired: LetsencryptState) -> LetsencryptState:
        """Enable certificates, then make sure the renewal job exists.

        An app that already has certificates enabled is never adopted. A
        renewal job failure after a successful enable raises
        :class:`~dokkuform.errors.RenewalJobError` and leaves the enable in
        place.
        """
        if self.commands.letsencrypt_active(desired.app_name):
            raise PreconditionError(
                f"letsencrypt already enabled for app {desired.app_name!r}",
                field="app_name",
            )
        self.commands.letsencrypt_enable(desired.app_name)
        installed = self.commands.letsencrypt_cron_job_add()
        LOGGER.debug("Renewal job %s", "installed" if installed else "already present")
        return desired

    def read(self, current: LetsencryptState) -> LetsencryptState | None:
        if not self.commands.letsencrypt_active(current.app_name):
            return None
        return current

    def update(self, prior: LetsencryptState, desired: LetsencryptState) -> LetsencryptState:
        self.ensure_identity_unchanged(prior, desired)
        return desired

    def delete(self, current: LetsencryptState) -> None:
        if not self.commands.letsencrypt_active(current.app_name):
            LOGGER.info("Letsencrypt already disabled for %s", current.app_name)
            return
        self.commands.letsencrypt_disable(current.app_name)


__all__ = ["LetsencryptReconciler"]
