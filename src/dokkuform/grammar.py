"""Pluggable grammar table describing Dokku's textual output.

The table maps report keys to field types, flag outputs to booleans and
stderr substrings to absence/presence signals. The default table ships as
``grammar.yml`` inside the package; :func:`load_grammar` accepts an override
path so drift in the remote tool is a data change rather than a code change.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from importlib import resources
from pathlib import Path

import yaml

from .config import ConfigError

SCHEMA_VERSION = 1
DEFAULT_GRAMMAR = "grammar.yml"
ALLOWED_SECTIONS = {"schema_version", "reports", "flags", "signals"}


class FieldType(str, Enum):
    """Type of a value inside a ``key: value`` report block."""

    LIST = "list"
    STRING = "string"
    BOOLEAN = "boolean"


@dataclass(frozen=True, slots=True)
class FlagTokens:
    """Recognised stdout tokens for single-word boolean commands."""

    truthy: frozenset[str]
    falsy: frozenset[str]


@dataclass(frozen=True, slots=True)
class SignalRule:
    """Stderr substrings that turn a non-zero exit into a known signal."""

    absent: tuple[str, ...] = ()
    present: tuple[str, ...] = ()

    def match_absent(self, text: str) -> bool:
        """Return ``True`` when *text* contains a recognised absence pattern."""
        return _contains_any(text, self.absent)

    def match_present(self, text: str) -> bool:
        """Return ``True`` when *text* contains a recognised presence pattern."""
        return _contains_any(text, self.present)


@dataclass(frozen=True, slots=True)
class Grammar:
    """Resolved grammar table."""

    reports: Mapping[str, Mapping[str, FieldType]] = field(default_factory=dict)
    flags: Mapping[str, FlagTokens] = field(default_factory=dict)
    signals: Mapping[str, SignalRule] = field(default_factory=dict)
    source: str = "<memory>"

    def report(self, name: str) -> Mapping[str, FieldType]:
        """Return the field table for report *name*."""
        try:
            return self.reports[name]
        except KeyError:
            raise ConfigError(f"Grammar {self.source} defines no report named '{name}'.") from None

    def flag(self, name: str) -> FlagTokens:
        """Return the flag tokens for *name*."""
        try:
            return self.flags[name]
        except KeyError:
            raise ConfigError(f"Grammar {self.source} defines no flag named '{name}'.") from None

    def signal(self, name: str) -> SignalRule:
        """Return the signal rule for *name* (an empty rule when undefined)."""
        return self.signals.get(name, SignalRule())


def load_grammar(path: str | Path | None = None) -> Grammar:
    """Load the grammar table from *path* or the packaged default."""
    if path is None:
        text = resources.files(__package__).joinpath(DEFAULT_GRAMMAR).read_text(encoding="utf-8")
        source = f"package:{DEFAULT_GRAMMAR}"
    else:
        grammar_path = Path(path).expanduser()
        try:
            text = grammar_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Unable to read grammar file {grammar_path}: {exc}") from exc
        source = str(grammar_path)
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse grammar {source}: {exc}") from exc
    return parse_grammar(data, source=source)


def parse_grammar(data: object, *, source: str = "<memory>") -> Grammar:
    """Validate a raw mapping and build a :class:`Grammar`."""
    root = _as_mapping(data, source)
    unknown = set(root) - ALLOWED_SECTIONS
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown grammar sections in {source}: {joined}.")
    version = root.get("schema_version", SCHEMA_VERSION)
    if version != SCHEMA_VERSION:
        raise ConfigError(
            f"Unsupported grammar schema_version {version!r} in {source}; expected {SCHEMA_VERSION}."
        )

    reports: dict[str, dict[str, FieldType]] = {}
    for name, fields in _as_mapping(root.get("reports"), f"{source}:reports").items():
        table: dict[str, FieldType] = {}
        for key, kind in _as_mapping(fields, f"{source}:reports.{name}").items():
            try:
                table[key.strip()] = FieldType(str(kind))
            except ValueError:
                allowed = ", ".join(item.value for item in FieldType)
                raise ConfigError(
                    f"Unknown field type {kind!r} for '{key}' in {source}. Allowed: {allowed}."
                ) from None
        reports[name] = table

    flags: dict[str, FlagTokens] = {}
    for name, tokens in _as_mapping(root.get("flags"), f"{source}:flags").items():
        tokens_map = _as_mapping(tokens, f"{source}:flags.{name}")
        flags[name] = FlagTokens(
            truthy=_as_tokens(tokens_map.get("truthy"), f"{source}:flags.{name}.truthy"),
            falsy=_as_tokens(tokens_map.get("falsy"), f"{source}:flags.{name}.falsy"),
        )

    signals: dict[str, SignalRule] = {}
    for name, rule in _as_mapping(root.get("signals"), f"{source}:signals").items():
        rule_map = _as_mapping(rule, f"{source}:signals.{name}")
        extra = set(rule_map) - {"absent", "present"}
        if extra:
            joined = ", ".join(sorted(extra))
            raise ConfigError(f"Unknown keys for signal '{name}' in {source}: {joined}.")
        signals[name] = SignalRule(
            absent=_as_patterns(rule_map.get("absent"), f"{source}:signals.{name}.absent"),
            present=_as_patterns(rule_map.get("present"), f"{source}:signals.{name}.present"),
        )

    return Grammar(reports=reports, flags=flags, signals=signals, source=source)


def _contains_any(text: str, patterns: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(pattern.lower() in lowered for pattern in patterns)


def _as_mapping(value: object, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


def _as_tokens(value: object, label: str) -> frozenset[str]:
    return frozenset(token.strip().lower() for token in _as_patterns(value, label))


def _as_patterns(value: object, label: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, list):
        raise ConfigError(f"Expected {label} to be a list of strings.")
    patterns: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ConfigError(f"Expected {label} to contain non-empty strings. Got {item!r}.")
        patterns.append(item)
    return tuple(patterns)


__all__ = [
    "FieldType",
    "FlagTokens",
    "Grammar",
    "SignalRule",
    "load_grammar",
    "parse_grammar",
]
