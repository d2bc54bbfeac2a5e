"""Command channels that execute Dokku commands on the remote host.

A channel owns its transport and performs exactly one remote invocation per
:meth:`CommandChannel.execute` call. Channels never retry and never interpret
non-zero exit statuses; deciding whether a failure means "not found" or a real
error is left to :mod:`dokkuform.parser`.

Channels are not safe for concurrent use. Serialise access per host with
:meth:`dokkuform.locking.LockManager.host_lock` or use one channel per flow.
"""
from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import paramiko

from .errors import TransportError

if TYPE_CHECKING:
    from .config import RemoteConfig

LOGGER = logging.getLogger(__name__)

# ssh(1) exits with 255 when the client itself fails (connection, auth).
SSH_CLIENT_FAILURE = 255


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Captured outcome of a single remote command."""

    command: str
    stdout: str
    stderr: str
    exit_status: int

    @property
    def ok(self) -> bool:
        """Return ``True`` when the command exited successfully."""
        return self.exit_status == 0

    @property
    def message(self) -> str:
        """Return the most useful diagnostic text from the command output."""
        return self.stderr.strip() or self.stdout.strip() or "no output"


class CommandChannel(ABC):
    """Executes fully assembled command strings against one Dokku host."""

    command_prefix: str = ""

    def execute(self, command: str) -> CommandResult:
        """Run *command* remotely and return its captured output."""
        full_command = self.qualify(command)
        LOGGER.debug("Executing remote command: %s", full_command)
        result = self._run(full_command)
        LOGGER.debug(
            "Remote command finished (exit %s): %s",
            result.exit_status,
            full_command,
        )
        return result

    def qualify(self, command: str) -> str:
        """Return *command* with the configured prefix applied."""
        prefix = self.command_prefix.strip()
        return f"{prefix} {command}" if prefix else command

    def close(self) -> None:  # noqa: B027 - optional hook for subclasses
        """Release transport resources."""

    @abstractmethod
    def _run(self, command: str) -> CommandResult:
        """Perform the remote invocation."""


class ParamikoChannel(CommandChannel):
    """Channel backed by an already-connected :class:`paramiko.SSHClient`."""

    def __init__(
        self,
        client: paramiko.SSHClient,
        *,
        command_prefix: str = "",
        timeout: float | None = None,
    ) -> None:
        self.client = client
        self.command_prefix = command_prefix
        self.timeout = timeout

    def _run(self, command: str) -> CommandResult:
        try:
            _, stdout, stderr = self.client.exec_command(command, timeout=self.timeout)
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            exit_status = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as exc:
            raise TransportError(f"SSH session failed while running {command!r}", detail=str(exc)) from exc
        if exit_status < 0:
            raise TransportError(f"Remote side closed the session without an exit status for {command!r}")
        return CommandResult(command=command, stdout=out, stderr=err, exit_status=exit_status)

    def close(self) -> None:
        """Close the underlying SSH client."""
        self.client.close()


@dataclass(slots=True)
class SubprocessChannel(CommandChannel):
    """Channel that shells out to the system ``ssh`` client.

    Authentication is left to the user's ssh configuration (agent, config
    file, ``identity_file``); the channel only assembles the argument vector.
    """

    host: str
    user: str = "dokku"
    port: int = 22
    identity_file: str | None = None
    ssh_bin: str = "ssh"
    ssh_options: Sequence[str] = field(default_factory=tuple)
    command_prefix: str = ""
    timeout: float | None = None

    def ssh_argv(self, command: str) -> list[str]:
        """Return the ssh argument vector used to run *command*."""
        argv: list[str] = [self.ssh_bin, "-p", str(self.port)]
        if self.identity_file:
            argv.extend(["-i", self.identity_file])
        for option in self.ssh_options:
            argv.extend(["-o", option])
        argv.extend([f"{self.user}@{self.host}", "--", command])
        return argv

    def _run(self, command: str) -> CommandResult:
        argv = self.ssh_argv(command)
        try:
            completed = subprocess.run(  # noqa: S603
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise TransportError(f"{self.ssh_bin} not found", detail=str(exc)) from exc
        except subprocess.TimeoutExpired as exc:
            raise TransportError(
                f"Command timed out after {self.timeout}s on {self.host}: {command!r}"
            ) from exc
        stdout = completed.stdout or ""
        stderr = completed.stderr or ""
        if completed.returncode == SSH_CLIENT_FAILURE:
            raise TransportError(
                f"ssh to {self.user}@{self.host}:{self.port} failed",
                detail=stderr or stdout,
            )
        return CommandResult(
            command=command,
            stdout=stdout,
            stderr=stderr,
            exit_status=completed.returncode,
        )


def connect_channel(remote: RemoteConfig, **overrides: Any) -> SubprocessChannel:
    """Build a :class:`SubprocessChannel` from resolved remote settings."""
    if not remote.host:
        raise TransportError("No remote host configured (set remote.host)")
    params: dict[str, Any] = {
        "host": remote.host,
        "user": remote.user,
        "port": remote.port,
        "identity_file": str(remote.identity_file) if remote.identity_file else None,
        "ssh_bin": remote.ssh_bin,
        "ssh_options": tuple(remote.ssh_options),
        "command_prefix": remote.command_prefix,
        "timeout": remote.command_timeout,
    }
    params.update(overrides)
    return SubprocessChannel(**params)


__all__ = [
    "CommandChannel",
    "CommandResult",
    "ParamikoChannel",
    "SubprocessChannel",
    "connect_channel",
]
