"""Pytest configuration helpers and fakes shared by the test suite."""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from dokkuform.channel import CommandChannel, CommandResult
from dokkuform.commands import DokkuCommands
from dokkuform.grammar import Grammar, load_grammar

FIXTURES = Path(__file__).parent / "fixtures"

MUTATING_VERBS = ("add", "remove", "enable", "disable", "link", "unlink", "cron-job")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip expensive tests during mutation runs."""
    if not os.environ.get("MUTANT_UNDER_TEST"):
        return
    skip_marker = pytest.mark.skip(reason="Skipped during mutation run to avoid timeouts.")
    for item in items:
        if "mutation_timeout" in item.keywords:
            item.add_marker(skip_marker)


def read_fixture(name: str) -> str:
    """Return the contents of a captured output sample."""
    return (FIXTURES / name).read_text(encoding="utf-8")


def is_mutation(command: str) -> bool:
    """Return ``True`` when *command* changes remote state."""
    verb = command.split(" ", 1)[0].rsplit(":", 1)[-1]
    return verb in MUTATING_VERBS


class ScriptedChannel(CommandChannel):
    """Channel returning canned results keyed by exact command text."""

    def __init__(self, responses: dict[str, CommandResult | Exception] | None = None) -> None:
        self.responses = dict(responses or {})
        self.commands: list[str] = []

    def reply(self, command: str, *, stdout: str = "", stderr: str = "", exit_status: int = 0) -> None:
        self.responses[command] = CommandResult(command, stdout, stderr, exit_status)

    def _run(self, command: str) -> CommandResult:
        self.commands.append(command)
        response = self.responses.get(command)
        if response is None:
            raise AssertionError(f"Unexpected command: {command!r}")
        if isinstance(response, Exception):
            raise response
        return response


@dataclass
class FakeDokkuHost(CommandChannel):
    """In-memory Dokku host that understands the commands the engine issues.

    Output formats mirror real Dokku so the packaged grammar decodes them.
    ``failures`` maps a command to ``(exit_status, stderr)`` to inject errors.
    """

    apps: dict[str, list[str]] = field(default_factory=dict)
    letsencrypt: set[str] = field(default_factory=set)
    services: dict[str, dict[str, dict[str, str | None]]] = field(default_factory=dict)
    cron_job: bool = False
    failures: dict[str, tuple[int, str]] = field(default_factory=dict)
    commands: list[str] = field(default_factory=list)
    command_prefix: str = ""

    @property
    def mutations(self) -> list[str]:
        return [command for command in self.commands if is_mutation(command)]

    def _run(self, command: str) -> CommandResult:
        self.commands.append(command)
        if command in self.failures:
            exit_status, stderr = self.failures[command]
            return CommandResult(command, "", stderr, exit_status)
        verb, *args = command.split(" ")
        namespace, _, action = verb.partition(":")
        handler: Callable[[str, list[str]], CommandResult] | None = getattr(
            self, f"_{namespace}_{action}".replace("-", "_"), None
        )
        if handler is None and namespace in self.services:
            handler = getattr(self, f"_service_{action}", None)
            if handler is not None:
                return handler(command, [namespace, *args])
        if handler is None:
            return CommandResult(command, "", f" !     `{verb}` is not a dokku command.", 1)
        return handler(command, args)

    # -- helpers ---------------------------------------------------------
    @staticmethod
    def _ok(command: str, stdout: str = "") -> CommandResult:
        return CommandResult(command, stdout, "", 0)

    @staticmethod
    def _fail(command: str, message: str) -> CommandResult:
        return CommandResult(command, "", f" !     {message}\n", 1)

    def _missing_app(self, command: str, app: str) -> CommandResult | None:
        if app not in self.apps:
            return self._fail(command, f"App {app} does not exist")
        return None

    # -- domains ---------------------------------------------------------
    def _domains_report(self, command: str, args: list[str]) -> CommandResult:
        app = args[0]
        missing = self._missing_app(command, app)
        if missing:
            return missing
        vhosts = " ".join(self.apps[app])
        return self._ok(
            command,
            f"=====> {app} domains information\n"
            f"       Domains app enabled:           {'true' if vhosts else 'false'}\n"
            f"       Domains app vhosts:            {vhosts}\n"
            "       Domains global enabled:        true\n"
            "       Domains global vhosts:         dokku.me\n",
        )

    def _domains_add(self, command: str, args: list[str]) -> CommandResult:
        app, domain = args
        missing = self._missing_app(command, app)
        if missing:
            return missing
        if domain not in self.apps[app]:
            self.apps[app].append(domain)
        return self._ok(command, f"-----> Added {domain} to {app}\n")

    def _domains_remove(self, command: str, args: list[str]) -> CommandResult:
        app, domain = args
        missing = self._missing_app(command, app)
        if missing:
            return missing
        if domain in self.apps[app]:
            self.apps[app].remove(domain)
        return self._ok(command, f"-----> Removed {domain} from {app}\n")

    # -- letsencrypt -----------------------------------------------------
    def _letsencrypt_active(self, command: str, args: list[str]) -> CommandResult:
        missing = self._missing_app(command, args[0])
        if missing:
            return missing
        return self._ok(command, "true\n" if args[0] in self.letsencrypt else "false\n")

    def _letsencrypt_enable(self, command: str, args: list[str]) -> CommandResult:
        missing = self._missing_app(command, args[0])
        if missing:
            return missing
        self.letsencrypt.add(args[0])
        return self._ok(command, "-----> Certificate retrieved successfully.\n")

    def _letsencrypt_disable(self, command: str, args: list[str]) -> CommandResult:
        self.letsencrypt.discard(args[0])
        return self._ok(command, "-----> Disabling letsencrypt\n")

    def _letsencrypt_cron_job(self, command: str, args: list[str]) -> CommandResult:
        if self.cron_job:
            return self._fail(command, "Cron job already exists")
        self.cron_job = True
        return self._ok(command, "-----> Added cron job to dokku's crontab.\n")

    # -- services --------------------------------------------------------
    def _service_exists(self, command: str, args: list[str]) -> CommandResult:
        service_type, name = args
        if name not in self.services[service_type]:
            return self._fail(command, f"Service {name} does not exist")
        return self._ok(command, f"-----> Service {name} exists\n")

    def _service_linked(self, command: str, args: list[str]) -> CommandResult:
        service_type, name, app = args
        if name not in self.services[service_type]:
            return self._fail(command, f"Service {name} does not exist")
        if app not in self.services[service_type][name]:
            return self._fail(command, f"Service {name} is not linked to {app}")
        return self._ok(command, f"-----> Service {name} is linked to {app}\n")

    def _service_link(self, command: str, args: list[str]) -> CommandResult:
        service_type, name, app, *options = args
        alias = options[1] if options[:1] == ["--alias"] else None
        links = self.services[service_type].get(name)
        if links is None:
            return self._fail(command, f"Service {name} does not exist")
        if app in links:
            return self._fail(command, f"Already linked as {links[app] or 'DATABASE'}_URL")
        links[app] = alias
        return self._ok(command, f"-----> Setting config vars\n       {alias or 'DATABASE'}_URL: ...\n")

    def _service_unlink(self, command: str, args: list[str]) -> CommandResult:
        service_type, name, app = args
        links = self.services[service_type].get(name, {})
        if app not in links:
            return self._fail(command, f"Not linked to app {app}")
        del links[app]
        return self._ok(command, "-----> Unsetting DATABASE_URL\n")


@pytest.fixture(scope="session")
def grammar() -> Grammar:
    """Return the packaged grammar table."""
    return load_grammar()


@pytest.fixture
def host() -> FakeDokkuHost:
    """Return a fake Dokku host with one app and a postgres service."""
    return FakeDokkuHost(
        apps={"myapp": ["myapp.dokku.me"], "other": []},
        services={"postgres": {"mydb": {}, "spare": {}}},
    )


@pytest.fixture
def commands(host: FakeDokkuHost, grammar: Grammar) -> DokkuCommands:
    """Return the command vocabulary bound to the fake host."""
    return DokkuCommands(channel=host, grammar=grammar)
