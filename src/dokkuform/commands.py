"""Typed Dokku queries (fact extractors) and mutations.

Every method maps its arguments to exactly one command string, sends it
through the channel and decodes the answer with the grammar table. Queries
return facts; mutations return ``None`` or raise. Argument values are passed
through verbatim; constraining their character set is the caller's job.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from .channel import CommandChannel, CommandResult
from .errors import RemoteCommandError, RenewalJobError
from .grammar import Grammar
from .parser import RemoteResponse, ResponseKind, decode_flag, decode_report_list, decode_signal

LOGGER = logging.getLogger(__name__)

DOMAINS_VHOSTS_KEY = "Domains app vhosts"

# Step status reported to ``on_result`` for each decoded response kind.
STEP_STATUS = {
    ResponseKind.SUCCESS: "success",
    ResponseKind.KNOWN_ABSENCE: "absent",
    ResponseKind.KNOWN_PRESENCE: "skipped",
    ResponseKind.UNKNOWN_FAILURE: "failed",
}

ResultHook = Callable[[CommandResult, str], None]


def build_command(
    verb: str,
    *args: str,
    options: Mapping[str, str | None] | None = None,
) -> str:
    """Assemble ``<namespace>:<verb> <args...> [--flag value ...]``.

    Options whose value is ``None`` or empty are omitted entirely; present
    options are emitted as two tokens (``--alias`` then ``VALUE``).
    """
    tokens = [verb, *args]
    for name, value in (options or {}).items():
        if not value:
            continue
        tokens.extend([f"--{name}", value])
    return " ".join(tokens)


@dataclass(slots=True)
class DokkuCommands:
    """Dokku command vocabulary bound to one channel and grammar.

    ``on_result`` receives every command result together with a step status:
    ``success``, ``failed``, ``absent`` (a recognised "not found") or
    ``skipped`` (a recognised "already done").
    """

    channel: CommandChannel
    grammar: Grammar
    on_result: ResultHook | None = None

    # ------------------------------------------------------------------
    # Fact extractors
    # ------------------------------------------------------------------
    def domain_vhosts(self, app: str) -> frozenset[str] | None:
        """Return the vhosts bound to *app*, or ``None`` when the app is missing."""
        response = self._query(build_command("domains:report", app), "domains_report")
        if response.kind is ResponseKind.KNOWN_ABSENCE:
            return None
        if response.kind is not ResponseKind.SUCCESS:
            raise response.failure(f"Unable to read domains for app '{app}'")
        return decode_report_list(
            response.result.stdout, self.grammar.report("domains_report"), DOMAINS_VHOSTS_KEY
        )

    def letsencrypt_active(self, app: str) -> bool:
        """Return whether Let's Encrypt is enabled for *app*."""
        response = self._query(build_command("letsencrypt:active", app), "letsencrypt_active")
        if response.kind is ResponseKind.KNOWN_ABSENCE:
            return False
        if response.kind is not ResponseKind.SUCCESS:
            raise response.failure(f"Unable to read letsencrypt status for app '{app}'")
        return decode_flag(response.result, self.grammar.flag("letsencrypt_active"))

    def service_exists(self, service_type: str, name: str) -> bool:
        """Return whether the *service_type* service *name* exists."""
        return self._query(build_command(f"{service_type}:exists", name), "service_exists").as_presence()

    def service_linked(self, service_type: str, name: str, app: str) -> bool:
        """Return whether service *name* is linked to *app*."""
        command = build_command(f"{service_type}:linked", name, app)
        return self._query(command, "service_linked").as_presence()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def domains_add(self, app: str, domain: str) -> None:
        """Bind *domain* to *app*."""
        self._mutate(build_command("domains:add", app, domain), f"Unable to add domain '{domain}'")

    def domains_remove(self, app: str, domain: str) -> None:
        """Unbind *domain* from *app*."""
        self._mutate(
            build_command("domains:remove", app, domain),
            f"Unable to remove domain '{domain}'",
        )

    def letsencrypt_enable(self, app: str) -> None:
        """Issue a certificate for *app* and enable TLS."""
        self._mutate(
            build_command("letsencrypt:enable", app),
            f"Unable to enable letsencrypt for app '{app}'",
        )

    def letsencrypt_disable(self, app: str) -> None:
        """Disable Let's Encrypt for *app*."""
        self._mutate(
            build_command("letsencrypt:disable", app),
            f"Unable to disable letsencrypt for app '{app}'",
        )

    def letsencrypt_cron_job_add(self) -> bool:
        """Ensure the global certificate renewal job exists.

        Returns ``True`` when the job was installed by this call and ``False``
        when the host reported that it already existed.
        """
        response = self._query(build_command("letsencrypt:cron-job", "--add"), "letsencrypt_cron_job")
        if response.kind is ResponseKind.SUCCESS:
            return True
        if response.kind is ResponseKind.KNOWN_PRESENCE:
            LOGGER.debug("Renewal job already present: %s", response.text)
            return False
        raise response.failure("Unable to add letsencrypt renewal job", RenewalJobError)

    def service_link(self, service_type: str, name: str, app: str, *, alias: str | None = None) -> None:
        """Link service *name* to *app*, optionally under *alias*."""
        self._mutate(
            build_command(f"{service_type}:link", name, app, options={"alias": alias}),
            f"Unable to link {service_type} service '{name}' to app '{app}'",
        )

    def service_unlink(self, service_type: str, name: str, app: str) -> None:
        """Unlink service *name* from *app*."""
        self._mutate(
            build_command(f"{service_type}:unlink", name, app),
            f"Unable to unlink {service_type} service '{name}' from app '{app}'",
        )

    # ------------------------------------------------------------------
    def _query(self, command: str, signal: str) -> RemoteResponse:
        result = self.channel.execute(command)
        response = decode_signal(result, self.grammar.signal(signal))
        self._notify(result, STEP_STATUS[response.kind])
        return response

    def _mutate(self, command: str, message: str) -> None:
        result = self.channel.execute(command)
        self._notify(result, "success" if result.ok else "failed")
        if not result.ok:
            raise RemoteCommandError(
                message,
                command=result.command,
                exit_status=result.exit_status,
                stderr=result.message,
            )

    def _notify(self, result: CommandResult, status: str) -> None:
        if self.on_result is not None:
            self.on_result(result, status)


__all__ = ["DOMAINS_VHOSTS_KEY", "STEP_STATUS", "DokkuCommands", "build_command"]
