"""Tests for entity state tuples and import identifiers."""
from __future__ import annotations

import pytest

from dokkuform.errors import ParseError
from dokkuform.models import (
    DomainState,
    EntityKind,
    EntityRef,
    LetsencryptState,
    ServiceLinkState,
    changed_identity_fields,
)


def test_domain_import_identifier() -> None:
    state = DomainState.from_import_id("myapp example.com")

    assert state == DomainState(app_name="myapp", domain="example.com")
    assert state.ref == EntityRef(EntityKind.DOMAIN, "myapp", "example.com")


def test_letsencrypt_import_identifier() -> None:
    assert LetsencryptState.from_import_id("myapp") == LetsencryptState(app_name="myapp")


@pytest.mark.parametrize(
    ("identifier", "alias"),
    [("myapp mydb", None), ("myapp mydb ALIAS_URL", "ALIAS_URL")],
)
def test_service_link_import_identifier(identifier: str, alias: str | None) -> None:
    """The optional third field becomes the alias."""
    state = ServiceLinkState.from_import_id(identifier)

    assert state.app_name == "myapp"
    assert state.service_name == "mydb"
    assert state.alias == alias


@pytest.mark.parametrize(
    ("state_type", "identifier"),
    [
        (DomainState, "myapp"),
        (DomainState, "myapp example.com extra"),
        (DomainState, "myapp  example.com"),
        (LetsencryptState, ""),
        (LetsencryptState, "myapp other"),
        (ServiceLinkState, "myapp"),
        (ServiceLinkState, "a b c d"),
    ],
)
def test_malformed_import_identifier(state_type: type, identifier: str) -> None:
    with pytest.raises(ParseError, match="space-separated"):
        state_type.from_import_id(identifier)


def test_identity_is_case_sensitive() -> None:
    """Identity fields compare by exact string match."""
    assert changed_identity_fields(DomainState("myapp", "a.com"), DomainState("MyApp", "a.com")) == [
        "app_name"
    ]
    assert changed_identity_fields(DomainState("myapp", "a.com"), DomainState("myapp", "b.com")) == []


def test_identity_comparison_requires_same_kind() -> None:
    with pytest.raises(TypeError):
        changed_identity_fields(DomainState("myapp", "a.com"), LetsencryptState("myapp"))


def test_to_dict_shapes() -> None:
    assert ServiceLinkState("myapp", "mydb").to_dict() == {
        "app_name": "myapp",
        "service_name": "mydb",
        "alias": None,
    }
    assert EntityRef(EntityKind.LETSENCRYPT, "myapp").to_dict() == {
        "kind": "letsencrypt",
        "app_name": "myapp",
        "key": None,
    }
