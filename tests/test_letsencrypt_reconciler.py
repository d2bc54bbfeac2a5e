"""Tests for the Let's Encrypt reconciler."""
from __future__ import annotations

import pytest
from conftest import FakeDokkuHost

from dokkuform.commands import DokkuCommands
from dokkuform.errors import PreconditionError, RemoteCommandError, RenewalJobError
from dokkuform.models import LetsencryptState
from dokkuform.reconcilers import LetsencryptReconciler


@pytest.fixture
def reconciler(commands: DokkuCommands) -> LetsencryptReconciler:
    return LetsencryptReconciler(commands)


def test_create_enables_and_installs_renewal_job(
    reconciler: LetsencryptReconciler,
    host: FakeDokkuHost,
) -> None:
    """Enabling certificates also ensures the renewal job."""
    desired = LetsencryptState(app_name="myapp")

    assert reconciler.create(desired) == desired
    assert reconciler.read(desired) == desired
    assert host.mutations == ["letsencrypt:enable myapp", "letsencrypt:cron-job --add"]
    assert host.cron_job is True


def test_create_with_existing_renewal_job(
    reconciler: LetsencryptReconciler,
    host: FakeDokkuHost,
) -> None:
    """An already-installed renewal job is not an error."""
    host.cron_job = True

    reconciler.create(LetsencryptState(app_name="other"))

    assert "other" in host.letsencrypt


def test_create_when_already_enabled(reconciler: LetsencryptReconciler, host: FakeDokkuHost) -> None:
    host.letsencrypt.add("myapp")

    with pytest.raises(PreconditionError) as excinfo:
        reconciler.create(LetsencryptState(app_name="myapp"))

    assert excinfo.value.field == "app_name"
    assert host.mutations == []


def test_create_enable_failure(reconciler: LetsencryptReconciler, host: FakeDokkuHost) -> None:
    """A failed issuance stops before the renewal job."""
    host.failures["letsencrypt:enable myapp"] = (1, " !     Challenge failed")

    with pytest.raises(RemoteCommandError, match="Challenge failed"):
        reconciler.create(LetsencryptState(app_name="myapp"))

    assert host.mutations == ["letsencrypt:enable myapp"]


def test_create_renewal_job_failure(reconciler: LetsencryptReconciler, host: FakeDokkuHost) -> None:
    """The enable stays in place when the renewal job cannot be installed."""
    host.failures["letsencrypt:cron-job --add"] = (1, "crontab: permission denied")

    with pytest.raises(RenewalJobError):
        reconciler.create(LetsencryptState(app_name="myapp"))

    assert "myapp" in host.letsencrypt


def test_read_inactive_is_vanished(reconciler: LetsencryptReconciler) -> None:
    assert reconciler.read(LetsencryptState(app_name="myapp")) is None
    assert reconciler.read(LetsencryptState(app_name="ghost")) is None


def test_delete_is_idempotent(reconciler: LetsencryptReconciler, host: FakeDokkuHost) -> None:
    host.letsencrypt.add("myapp")
    state = LetsencryptState(app_name="myapp")

    reconciler.delete(state)
    assert reconciler.read(state) is None
    reconciler.delete(state)

    assert host.mutations == ["letsencrypt:disable myapp"]


def test_update_same_app_is_noop(reconciler: LetsencryptReconciler, host: FakeDokkuHost) -> None:
    state = LetsencryptState(app_name="myapp")

    assert reconciler.update(state, state) == state
    assert host.commands == []


def test_update_rejects_app_change(reconciler: LetsencryptReconciler, host: FakeDokkuHost) -> None:
    with pytest.raises(PreconditionError) as excinfo:
        reconciler.update(LetsencryptState("myapp"), LetsencryptState("other"))

    assert excinfo.value.field == "app_name"
    assert host.commands == []
