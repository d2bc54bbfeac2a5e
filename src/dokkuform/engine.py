"""Entry point used by declarative front-ends to drive reconciliation.

The engine owns one command channel for one Dokku host. Each call to
:meth:`ReconcileEngine.apply` takes the per-host lock, opens a structured
operation record, runs the selected reconciler operation and records every
remote command as a step. Failures are recorded and re-raised unchanged;
nothing is retried.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .channel import CommandChannel, CommandResult, connect_channel
from .commands import DokkuCommands, ResultHook
from .config import AppConfig
from .errors import DokkuformError
from .grammar import Grammar, load_grammar
from .locking import LockManager
from .logging import OperationScope, StructuredLogger
from .models import DomainState, EntityKind, LetsencryptState, ReconciledState, ServiceLinkState
from .reconcilers import (
    DomainReconciler,
    LetsencryptReconciler,
    Reconciler,
    ServiceLinkReconciler,
)


class Operation(str, Enum):
    """Operation selector understood by :meth:`ReconcileEngine.apply`."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    IMPORT = "import"


@dataclass(slots=True)
class ReconcileEngine:
    """Dispatch reconciliation requests for a single Dokku host."""

    channel: CommandChannel
    grammar: Grammar
    logger: StructuredLogger
    locks: LockManager
    host: str

    @classmethod
    def from_config(cls, config: AppConfig, channel: CommandChannel | None = None) -> ReconcileEngine:
        """Wire an engine from resolved configuration."""
        return cls(
            channel=channel or connect_channel(config.remote),
            grammar=load_grammar(config.grammar_file),
            logger=StructuredLogger(config.logs_dir),
            locks=LockManager(config.runtime_dir, config.lock_timeout),
            host=config.remote.host or "localhost",
        )

    def reconciler(
        self,
        kind: EntityKind,
        *,
        service_type: str | None = None,
        on_result: ResultHook | None = None,
    ) -> Reconciler:
        """Return the reconciler for *kind* bound to this engine's channel."""
        commands = DokkuCommands(channel=self.channel, grammar=self.grammar, on_result=on_result)
        if kind is EntityKind.DOMAIN:
            return DomainReconciler(commands)
        if kind is EntityKind.LETSENCRYPT:
            return LetsencryptReconciler(commands)
        if kind is EntityKind.SERVICE_LINK:
            if not service_type:
                raise ValueError("service_type is required for service links")
            return ServiceLinkReconciler(commands, service_type)
        raise ValueError(f"Unsupported entity kind: {kind!r}")

    def apply(
        self,
        kind: EntityKind,
        operation: Operation,
        *,
        desired: ReconciledState | None = None,
        prior: ReconciledState | None = None,
        identifier: str | None = None,
        service_type: str | None = None,
    ) -> ReconciledState | None:
        """Run *operation* for *kind*.

        ``create`` takes *desired*; ``read`` and ``delete`` take *prior*;
        ``update`` takes both; ``import`` takes *identifier* and never talks to
        the host. Returns the reconciled state, ``None`` when ``read`` found the
        entity gone, and ``None`` for ``delete``.
        """
        kind = EntityKind(kind)
        operation = Operation(operation)
        if operation is Operation.IMPORT:
            if identifier is None:
                raise ValueError("import requires an identifier")
            return _STATE_TYPES[kind].from_import_id(identifier)

        subject: ReconciledState
        if operation is Operation.CREATE:
            if desired is None:
                raise ValueError("create requires a desired state")
            subject = desired
        else:
            if prior is None:
                raise ValueError(f"{operation.value} requires a prior state")
            if operation is Operation.UPDATE and desired is None:
                raise ValueError("update requires a desired state")
            subject = prior

        args: dict[str, object] = {"service_type": service_type}
        if desired is not None:
            args["desired"] = desired.to_dict()
        if prior is not None:
            args["prior"] = prior.to_dict()
        target = {"host": self.host, **subject.ref.to_dict()}

        with self.logger.operation(f"{kind.value} {operation.value}", args=args, target=target) as op:
            with self.locks.host_lock(self.host) as handle:
                op.set_lock_wait_ms(handle.wait_ms)
                reconciler = self.reconciler(
                    kind, service_type=service_type, on_result=_step_recorder(op)
                )
                try:
                    outcome = self._dispatch(reconciler, operation, desired, prior)
                except DokkuformError as exc:
                    op.error(str(exc), errors=[exc.message], changed=_mutations(op))
                    raise
            _record_outcome(op, operation, outcome)
            return outcome

    def close(self) -> None:
        """Close the underlying channel."""
        self.channel.close()

    @staticmethod
    def _dispatch(
        reconciler: Reconciler,
        operation: Operation,
        desired: ReconciledState | None,
        prior: ReconciledState | None,
    ) -> ReconciledState | None:
        if operation is Operation.CREATE:
            return reconciler.create(desired)
        if operation is Operation.READ:
            return reconciler.read(prior)
        if operation is Operation.UPDATE:
            return reconciler.update(prior, desired)
        reconciler.delete(prior)
        return None


_STATE_TYPES: dict[EntityKind, type[DomainState] | type[LetsencryptState] | type[ServiceLinkState]] = {
    EntityKind.DOMAIN: DomainState,
    EntityKind.LETSENCRYPT: LetsencryptState,
    EntityKind.SERVICE_LINK: ServiceLinkState,
}

_QUERY_VERBS = ("report", "active", "exists", "linked")


def _is_query(command: str) -> bool:
    verb = command.split(" ", 1)[0].rsplit(":", 1)[-1]
    return verb in _QUERY_VERBS


def _step_recorder(op: OperationScope) -> ResultHook:
    def record(result: CommandResult, status: str) -> None:
        op.add_step(
            "query" if _is_query(_strip_prefix(result.command)) else "mutation",
            status=status,
            detail={"command": result.command, "exit_status": result.exit_status},
        )

    return record


def _strip_prefix(command: str) -> str:
    head, _, rest = command.partition(" ")
    return rest if ":" not in head and rest else command


def _mutations(op: OperationScope) -> int:
    return sum(1 for step in op.steps if step["name"] == "mutation" and step["status"] == "success")


def _record_outcome(
    op: OperationScope,
    operation: Operation,
    outcome: ReconciledState | None,
) -> None:
    changed = _mutations(op)
    if operation is Operation.READ and outcome is None:
        op.success("Resource no longer exists.", changed=0, context={"vanished": True})
    elif operation is Operation.DELETE and changed == 0:
        op.success("Resource already absent.", changed=0)
    else:
        context = outcome.to_dict() if outcome is not None else {}
        op.success(f"{operation.value.capitalize()} complete.", changed=changed, context=context)


__all__ = ["Operation", "ReconcileEngine"]
