"""Grammar table loading and contract tests against captured Dokku output."""
from __future__ import annotations

from pathlib import Path

import pytest
from conftest import read_fixture

from dokkuform.channel import CommandResult
from dokkuform.commands import DOMAINS_VHOSTS_KEY
from dokkuform.config import ConfigError
from dokkuform.grammar import FieldType, Grammar, load_grammar, parse_grammar
from dokkuform.parser import ResponseKind, decode_report, decode_signal


def _failure(name: str) -> CommandResult:
    return CommandResult("captured", "", read_fixture(name), 1)


def test_packaged_grammar_describes_domains_report(grammar: Grammar) -> None:
    """The packaged table knows the vhost list field."""
    assert grammar.report("domains_report")[DOMAINS_VHOSTS_KEY] is FieldType.LIST
    assert grammar.source == "package:grammar.yml"


def test_captured_domains_report_decodes(grammar: Grammar) -> None:
    """A real ``domains:report`` block decodes every described field."""
    values = decode_report(read_fixture("domains_report.txt"), grammar.report("domains_report"))

    assert values[DOMAINS_VHOSTS_KEY] == {"node-js-app.dokku.me", "example.com"}
    assert values["Domains app enabled"] is True
    assert values["Domains global vhosts"] == {"dokku.me"}


def test_captured_empty_domains_report_decodes(grammar: Grammar) -> None:
    """An app without vhosts reports an empty list, not a missing key."""
    values = decode_report(read_fixture("domains_report_empty.txt"), grammar.report("domains_report"))

    assert values[DOMAINS_VHOSTS_KEY] == frozenset()
    assert values["Domains app enabled"] is False


@pytest.mark.parametrize(
    ("signal", "fixture", "expected"),
    [
        ("domains_report", "domains_report_app_missing.stderr", ResponseKind.KNOWN_ABSENCE),
        ("service_exists", "service_exists_missing.stderr", ResponseKind.KNOWN_ABSENCE),
        ("service_linked", "service_linked_missing.stderr", ResponseKind.KNOWN_ABSENCE),
        ("letsencrypt_cron_job", "letsencrypt_cron_job_exists.stderr", ResponseKind.KNOWN_PRESENCE),
        ("service_exists", "letsencrypt_cron_job_exists.stderr", ResponseKind.UNKNOWN_FAILURE),
    ],
)
def test_captured_stderr_signals(
    grammar: Grammar,
    signal: str,
    fixture: str,
    expected: ResponseKind,
) -> None:
    """Captured stderr samples classify as the grammar promises."""
    assert decode_signal(_failure(fixture), grammar.signal(signal)).kind is expected


def test_grammar_override_file(tmp_path: Path) -> None:
    """An override file replaces the packaged table."""
    path = tmp_path / "grammar.yml"
    path.write_text(
        "schema_version: 1\n"
        "reports:\n"
        "  domains_report:\n"
        "    'Domains app vhosts': list\n"
        "signals:\n"
        "  service_exists:\n"
        "    absent: ['no such service']\n",
        encoding="utf-8",
    )

    grammar = load_grammar(path)

    assert grammar.source == str(path)
    assert grammar.signal("service_exists").absent == ("no such service",)
    assert grammar.signal("undefined").absent == ()


@pytest.mark.parametrize(
    ("data", "message"),
    [
        ({"extra": {}}, "Unknown grammar sections"),
        ({"schema_version": 2}, "Unsupported grammar schema_version"),
        ({"reports": {"r": {"Key": "number"}}}, "Unknown field type"),
        ({"signals": {"s": {"absent": "not a list"}}}, "list of strings"),
        ({"signals": {"s": {"missing": ["x"]}}}, "Unknown keys for signal"),
        ({"flags": {"f": {"truthy": [""]}}}, "non-empty strings"),
    ],
)
def test_invalid_grammar_raises(data: object, message: str) -> None:
    """Malformed tables are configuration errors."""
    with pytest.raises(ConfigError, match=message):
        parse_grammar(data)


def test_missing_report_or_flag_lookup_raises() -> None:
    """Looking up undefined reports or flags is a configuration error."""
    grammar = parse_grammar({})

    with pytest.raises(ConfigError, match="no report"):
        grammar.report("domains_report")
    with pytest.raises(ConfigError, match="no flag"):
        grammar.flag("letsencrypt_active")


def test_flag_tokens_are_case_insensitive() -> None:
    """Flag tokens are normalised to lower case."""
    grammar = parse_grammar({"flags": {"f": {"truthy": ["YES"], "falsy": ["No"]}}})

    assert grammar.flag("f").truthy == {"yes"}
    assert grammar.flag("f").falsy == {"no"}
