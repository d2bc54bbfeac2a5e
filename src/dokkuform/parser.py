"""Decoders for Dokku's line-oriented command output.

Dokku answers descriptive queries with ``key: value`` report blocks::

    =====> myapp domains information
           Domains app enabled:           true
           Domains app vhosts:            myapp.example.com www.example.com

and answers existence checks by exit status plus a free-form stderr message.
This module turns both shapes into typed facts. It never defaults a missing
field: an absent key is a :class:`~dokkuform.errors.ParseError`.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import cast

from .channel import CommandResult
from .errors import ParseError, RemoteCommandError
from .grammar import FieldType, FlagTokens, SignalRule

ReportValue = frozenset[str] | str | bool


class ResponseKind(str, Enum):
    """Classification of a remote command outcome."""

    SUCCESS = "success"
    KNOWN_ABSENCE = "known-absence"
    KNOWN_PRESENCE = "known-presence"
    UNKNOWN_FAILURE = "unknown-failure"


@dataclass(frozen=True, slots=True)
class RemoteResponse:
    """Tagged outcome of a command, produced by :func:`decode_signal`."""

    kind: ResponseKind
    result: CommandResult

    @property
    def text(self) -> str:
        """Return the verbatim diagnostic text of the command."""
        return self.result.message

    def as_presence(self) -> bool:
        """Interpret the response as an existence fact.

        Success and recognised presence mean ``True``; recognised absence means
        ``False``. Anything else raises :class:`RemoteCommandError`.
        """
        if self.kind in (ResponseKind.SUCCESS, ResponseKind.KNOWN_PRESENCE):
            return True
        if self.kind is ResponseKind.KNOWN_ABSENCE:
            return False
        raise self.failure("Remote command failed")

    def failure(self, message: str, error: type[RemoteCommandError] = RemoteCommandError) -> RemoteCommandError:
        """Build an error of type *error* carrying the verbatim remote output."""
        return error(
            message,
            command=self.result.command,
            exit_status=self.result.exit_status,
            stderr=self.text,
        )


def split_report_line(line: str) -> tuple[str, str] | None:
    """Split a report line on its first colon, or return ``None``."""
    key, sep, value = line.partition(":")
    if not sep:
        return None
    return key.strip(), value.strip()


def decode_value(key: str, raw: str, kind: FieldType) -> ReportValue:
    """Convert a raw report value according to *kind*."""
    if kind is FieldType.LIST:
        return frozenset(token for token in raw.split(" ") if token)
    if kind is FieldType.BOOLEAN:
        lowered = raw.lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        raise ParseError(f"Field '{key}' is not a boolean", detail=raw)
    return raw


def decode_report(
    text: str,
    fields: Mapping[str, FieldType],
    *,
    keys: Iterable[str] | None = None,
) -> dict[str, ReportValue]:
    """Decode the requested *keys* (default: every key in *fields*) from *text*.

    Lines without a colon are banners and are skipped. When a key appears more
    than once the first occurrence wins. Raises :class:`ParseError` when a
    requested key never appears.
    """
    wanted = list(fields if keys is None else keys)
    for key in wanted:
        if key not in fields:
            raise ParseError(f"Report key '{key}' is not described by the grammar")

    seen: dict[str, str] = {}
    for line in text.splitlines():
        parts = split_report_line(line)
        if parts is None:
            continue
        key, value = parts
        if key in fields and key not in seen:
            seen[key] = value

    missing = [key for key in wanted if key not in seen]
    if missing:
        joined = ", ".join(f"'{key}'" for key in missing)
        raise ParseError(f"Report is missing expected field(s) {joined}", detail=text)
    return {key: decode_value(key, seen[key], fields[key]) for key in wanted}


def decode_report_list(text: str, fields: Mapping[str, FieldType], key: str) -> frozenset[str]:
    """Return the single list-typed *key* from a report block."""
    if fields.get(key) is not FieldType.LIST:
        raise ParseError(f"Report key '{key}' is not a list field")
    return cast(frozenset[str], decode_report(text, fields, keys=[key])[key])


def decode_signal(result: CommandResult, rule: SignalRule) -> RemoteResponse:
    """Classify *result* using the stderr patterns in *rule*.

    A zero exit is a success. A non-zero exit is a known absence or presence
    only when its output contains one of the recognised patterns; any other
    non-zero exit is an unknown failure and must be surfaced as an error.
    """
    if result.ok:
        return RemoteResponse(ResponseKind.SUCCESS, result)
    text = result.stderr if result.stderr.strip() else result.stdout
    if rule.match_absent(text):
        return RemoteResponse(ResponseKind.KNOWN_ABSENCE, result)
    if rule.match_present(text):
        return RemoteResponse(ResponseKind.KNOWN_PRESENCE, result)
    return RemoteResponse(ResponseKind.UNKNOWN_FAILURE, result)


def decode_flag(result: CommandResult, tokens: FlagTokens) -> bool:
    """Decode a single-token boolean printed on stdout."""
    value = result.stdout.strip().lower()
    if value in tokens.truthy:
        return True
    if value in tokens.falsy:
        return False
    raise ParseError(f"Unexpected output from {result.command!r}", detail=result.stdout or "<empty>")


__all__ = [
    "RemoteResponse",
    "ReportValue",
    "ResponseKind",
    "decode_flag",
    "decode_report",
    "decode_report_list",
    "decode_signal",
    "decode_value",
    "split_report_line",
]
