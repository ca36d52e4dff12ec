"""Reconciliation of the ManilaDriver singleton."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Sequence

from .builders.cluster import build_credentials_request, build_driver_credentials_secret, build_namespace
from .builders.rbac import (
    CONTROLLER_PLUGIN_CLUSTER_RULES,
    CONTROLLER_PLUGIN_LABELS,
    CONTROLLER_PLUGIN_NAME,
    CONTROLLER_PLUGIN_NAMESPACED_RULES,
    NFS_NODE_PLUGIN_CLUSTER_RULES,
    NFS_NODE_PLUGIN_LABELS,
    NFS_NODE_PLUGIN_NAME,
    NODE_PLUGIN_CLUSTER_RULES,
    NODE_PLUGIN_LABELS,
    NODE_PLUGIN_NAME,
    build_cluster_role,
    build_cluster_role_binding,
    build_role,
    build_role_binding,
    build_service_account,
)
from .builders.storage import STORAGE_CLASS_LABEL_SELECTOR, build_storage_class
from .builders.workloads import (
    build_controller_plugin_deployment,
    build_csi_driver,
    build_nfs_node_plugin_daemon_set,
    build_node_plugin_daemon_set,
    build_security_context_constraints,
)
from .constants import (
    ANNOTATION_PASS_REQUESTED,
    CLOUD_CREDENTIAL_OPERATOR_NAMESPACE,
    CREDENTIALS_REQUEST_NAME,
    DRIVER_NAMESPACE,
    DRIVER_SECRET_NAME,
    FINALIZER,
    KIND_MANILA_DRIVER,
    MANILA_CSI_DRIVER_NAME,
    MANILA_DRIVER_CR_NAME,
    SCC_NAME,
)
from .handlers.base import BaseHandler, PassContext
from .handlers.finalizer import FinalizationOrchestrator, deletion_targets
from .handlers.inventory import CACertHandler, InventoryGate
from .handlers.resources import ManagedObject, ResourceHandler, StorageClassHandler
from .kinds import MANILA_DRIVER, ManagedKind
from .services.store.base import ObjectStore
from .tracing import add_span_attribute, trace_span
from .utils.context import with_correlation_id
from .utils.errors import (
    CredentialsNotAvailable,
    InvalidDeclarationName,
    ManilaUnavailable,
    SingletonViolation,
    is_not_found,
)
from .utils.events import (
    emit_credentials_pending,
    emit_finalized,
    emit_invalid_configuration,
    emit_manila_unavailable,
)

CREDENTIALS_RETRY_DELAY_SECONDS = float(os.getenv("CREDENTIALS_RETRY_DELAY_SECONDS", "10"))


class OutcomeKind(str, Enum):
    """How a reconcile pass ended."""

    CONTINUE = "continue"
    DEFERRED = "deferred"
    FATAL = "fatal"


@dataclass(frozen=True)
class ReconcileOutcome:
    """Result of a reconcile pass that did not fail transiently.

    Attributes:
        kind: How the pass ended
        message: Human readable explanation
        delay: Seconds to wait before the next pass (deferred only)
        credentials_available: Whether the cloud credentials could be read, None if not checked
        manila_available: Whether the cloud offers Manila, None if not checked
        share_types: Names of the share types found, None if not listed
        finalized: Whether the pass completed the teardown
    """

    kind: OutcomeKind
    message: str = ""
    delay: float | None = None
    credentials_available: bool | None = None
    manila_available: bool | None = None
    share_types: tuple[str, ...] | None = None
    finalized: bool = False

    @classmethod
    def done(cls, message: str = "", **kwargs: Any) -> ReconcileOutcome:
        return cls(OutcomeKind.CONTINUE, message, **kwargs)

    @classmethod
    def deferred(cls, delay: float, message: str, **kwargs: Any) -> ReconcileOutcome:
        return cls(OutcomeKind.DEFERRED, message, delay=delay, **kwargs)

    @classmethod
    def fatal(cls, message: str) -> ReconcileOutcome:
        return cls(OutcomeKind.FATAL, message)


@dataclass(frozen=True)
class Step:
    """One entry of the ordered reconcile sequence."""

    name: str
    run: Callable[[PassContext], Any]


def _rbac_objects(
    name: str,
    labels: dict[str, str],
    cluster_rules: list[dict[str, Any]],
    namespaced_rules: list[dict[str, Any]] | None = None,
) -> list[ManagedObject]:
    objects = [
        ManagedObject(ManagedKind.SERVICE_ACCOUNT, name, DRIVER_NAMESPACE, lambda ctx: build_service_account(name, labels)),
        ManagedObject(ManagedKind.CLUSTER_ROLE, name, None, lambda ctx: build_cluster_role(name, labels, cluster_rules)),
        ManagedObject(ManagedKind.CLUSTER_ROLE_BINDING, name, None, lambda ctx: build_cluster_role_binding(name, labels)),
    ]
    if namespaced_rules:
        objects += [
            ManagedObject(ManagedKind.ROLE, name, DRIVER_NAMESPACE, lambda ctx: build_role(name, labels, namespaced_rules)),
            ManagedObject(ManagedKind.ROLE_BINDING, name, DRIVER_NAMESPACE, lambda ctx: build_role_binding(name, labels)),
        ]
    return objects


def _single(name: str, kind: ManagedKind, object_name: str, namespace: str | None, build: Callable[[PassContext], dict[str, Any]]) -> ResourceHandler:
    return ResourceHandler(name, [ManagedObject(kind, object_name, namespace, build)])


def default_resource_handlers() -> list[ResourceHandler]:
    """Resource handlers in creation order."""
    return [
        _single("namespace", ManagedKind.NAMESPACE, DRIVER_NAMESPACE, None, lambda ctx: build_namespace()),
        CACertHandler(),
        _single(
            "credentials-request",
            ManagedKind.CREDENTIALS_REQUEST,
            CREDENTIALS_REQUEST_NAME,
            CLOUD_CREDENTIAL_OPERATOR_NAMESPACE,
            lambda ctx: build_credentials_request(),
        ),
        _single(
            "driver-credentials",
            ManagedKind.SECRET,
            DRIVER_SECRET_NAME,
            DRIVER_NAMESPACE,
            lambda ctx: build_driver_credentials_secret(ctx.cloud, has_ca_cert=ctx.ca_cert is not None),
        ),
        StorageClassHandler(build_storage_class, STORAGE_CLASS_LABEL_SELECTOR),
        _single(
            "security-context-constraints",
            ManagedKind.SECURITY_CONTEXT_CONSTRAINTS,
            SCC_NAME,
            None,
            lambda ctx: build_security_context_constraints(),
        ),
        ResourceHandler(
            "nfs-node-plugin-rbac",
            _rbac_objects(NFS_NODE_PLUGIN_NAME, NFS_NODE_PLUGIN_LABELS, NFS_NODE_PLUGIN_CLUSTER_RULES),
        ),
        _single(
            "nfs-node-plugin",
            ManagedKind.DAEMON_SET,
            NFS_NODE_PLUGIN_NAME,
            DRIVER_NAMESPACE,
            lambda ctx: build_nfs_node_plugin_daemon_set(),
        ),
        _single("csi-driver", ManagedKind.CSI_DRIVER, MANILA_CSI_DRIVER_NAME, None, lambda ctx: build_csi_driver()),
        ResourceHandler(
            "controller-plugin-rbac",
            _rbac_objects(
                CONTROLLER_PLUGIN_NAME,
                CONTROLLER_PLUGIN_LABELS,
                CONTROLLER_PLUGIN_CLUSTER_RULES,
                CONTROLLER_PLUGIN_NAMESPACED_RULES,
            ),
        ),
        _single(
            "controller-plugin",
            ManagedKind.DEPLOYMENT,
            CONTROLLER_PLUGIN_NAME,
            DRIVER_NAMESPACE,
            lambda ctx: build_controller_plugin_deployment(),
        ),
        ResourceHandler(
            "node-plugin-rbac",
            _rbac_objects(NODE_PLUGIN_NAME, NODE_PLUGIN_LABELS, NODE_PLUGIN_CLUSTER_RULES),
        ),
        _single(
            "node-plugin",
            ManagedKind.DAEMON_SET,
            NODE_PLUGIN_NAME,
            DRIVER_NAMESPACE,
            lambda ctx: build_node_plugin_daemon_set(),
        ),
    ]


def build_steps(handlers: Sequence[ResourceHandler], gate: InventoryGate) -> list[Step]:
    """Interleave the inventory gate with the resource handlers.

    Credentials are loaded right after the credentials request and share types
    are listed right after the driver credentials secret.
    """
    steps = []
    for handler in handlers:
        steps.append(Step(handler.name, handler.apply))
        if handler.name == "credentials-request":
            steps.append(Step("cloud-credentials", gate.load_credentials))
        elif handler.name == "driver-credentials":
            steps.append(Step("share-types", gate.list_share_types))
    return steps


@dataclass
class _IdentityState:
    lock: threading.Lock = field(default_factory=threading.Lock)
    pending: bool = False


class ManilaDriverController(BaseHandler):
    """Serialized reconcile state machine for the ManilaDriver singleton."""

    def __init__(
        self,
        store: ObjectStore,
        gate: InventoryGate | None = None,
        handlers: Sequence[ResourceHandler] | None = None,
        credentials_retry_delay: float = CREDENTIALS_RETRY_DELAY_SECONDS,
    ):
        """Initialize the controller.

        Args:
            store: Object store holding the ManilaDriver and the managed objects
            gate: Inventory gate (default: one using the Manila client)
            handlers: Resource handlers in creation order (default: default_resource_handlers())
            credentials_retry_delay: Delay before retrying while credentials are missing
        """
        super().__init__(KIND_MANILA_DRIVER)
        self.store = store
        self.gate = gate or InventoryGate()
        self.handlers = list(handlers) if handlers is not None else default_resource_handlers()
        self.steps = build_steps(self.handlers, self.gate)
        self.finalizer = FinalizationOrchestrator(deletion_targets(self.handlers))
        self.credentials_retry_delay = credentials_retry_delay
        self._guard = threading.Lock()
        self._identities: dict[str, _IdentityState] = {}

    def trigger(self, name: str, coalesce: bool = False) -> ReconcileOutcome | None:
        """Run a pass for name, never concurrently with another pass for name.

        Args:
            name: Name of the ManilaDriver
            coalesce: When a pass for name is already running, record that
                another pass is needed and return immediately instead of waiting

        Returns:
            Outcome of the last pass run, None if the trigger was coalesced
        """
        with self._guard:
            state = self._identities.setdefault(name, _IdentityState())
            acquired = state.lock.acquire(blocking=False)
            if not acquired and coalesce:
                state.pending = True
                return None
        if not acquired:
            state.lock.acquire()

        try:
            while True:
                with self._guard:
                    state.pending = False
                outcome = self.reconcile(name)
                with self._guard:
                    if not state.pending:
                        state.lock.release()
                        return outcome
        except BaseException:
            state.lock.release()
            raise

    def request_pass(self, name: str) -> bool:
        """Ask the ManilaDriver's own handlers for a pass by stamping an annotation.

        Returns:
            False if the ManilaDriver no longer exists

        Raises:
            Exception: Store errors other than not-found, unchanged
        """
        try:
            instance = self.store.get(MANILA_DRIVER, name)
        except Exception as e:
            if not is_not_found(e):
                raise
            return False
        metadata = instance.setdefault("metadata", {})
        annotations = dict(metadata.get("annotations") or {})
        annotations[ANNOTATION_PASS_REQUESTED] = datetime.now(timezone.utc).isoformat()
        metadata["annotations"] = annotations
        self.store.update(instance)
        return True

    def reconcile(self, name: str) -> ReconcileOutcome:
        """Run one reconcile pass for the ManilaDriver named name.

        Raises:
            Exception: Transient store or cloud errors, for the caller to retry
        """
        with with_correlation_id(), trace_span("reconcile.pass", attributes={"maniladriver.name": name}):
            instances = self.store.list(MANILA_DRIVER)
            try:
                self._check_singleton(instances)
            except SingletonViolation as e:
                for item in instances:
                    self.log_error(item.get("metadata", {}), str(e), reason="SingletonViolation")
                    emit_invalid_configuration(item, str(e))
                return ReconcileOutcome.fatal(str(e))

            try:
                instance = self.store.get(MANILA_DRIVER, name)
            except Exception as e:
                if not is_not_found(e):
                    raise
                self.logger.info(f"{KIND_MANILA_DRIVER} {name} not found, nothing to do")
                return ReconcileOutcome.done(f"{KIND_MANILA_DRIVER} {name} not found")

            meta = instance.get("metadata", {})
            try:
                self._check_name(name)
            except InvalidDeclarationName as e:
                self.log_error(meta, str(e), reason="InvalidName")
                emit_invalid_configuration(instance, str(e))
                return ReconcileOutcome.fatal(str(e))

            if meta.get("deletionTimestamp"):
                return self._terminate(instance)

            if self.ensure_finalizer(instance):
                self.log_info(meta, "Adding finalizer", event="finalizer", reason="FinalizerAdded")
                instance = self.store.update(instance)
            return self._run_steps(instance)

    @staticmethod
    def _check_singleton(instances: Sequence[dict[str, Any]]) -> None:
        if len(instances) > 1:
            names = sorted(item.get("metadata", {}).get("name", "") for item in instances)
            raise SingletonViolation(
                f"only one {KIND_MANILA_DRIVER} may exist, found {len(instances)}: {', '.join(names)}"
            )

    @staticmethod
    def _check_name(name: str) -> None:
        if name != MANILA_DRIVER_CR_NAME:
            raise InvalidDeclarationName(f"{KIND_MANILA_DRIVER} must be named '{MANILA_DRIVER_CR_NAME}', not '{name}'")

    def _terminate(self, instance: dict[str, Any]) -> ReconcileOutcome:
        meta = instance.get("metadata", {})
        if FINALIZER not in (meta.get("finalizers") or []):
            return ReconcileOutcome.done("finalizer already removed")

        self.log_info(meta, f"{KIND_MANILA_DRIVER} is being deleted", event="deletion", reason="Deletion")
        with trace_span("reconcile.finalize"):
            self.finalizer.finalize(self.store, instance)
        self.remove_finalizer(instance)
        self.store.update(instance)
        emit_finalized(instance)
        self.log_info(meta, "Managed objects removed", event="deletion", reason="Finalized")
        return ReconcileOutcome.done("finalized", finalized=True)

    def _run_steps(self, instance: dict[str, Any]) -> ReconcileOutcome:
        meta = instance.get("metadata", {})
        ctx = PassContext(instance=instance, store=self.store)
        for step in self.steps:
            with trace_span(f"reconcile.step.{step.name}"):
                try:
                    step.run(ctx)
                except CredentialsNotAvailable as e:
                    self.log_warning(meta, str(e), event="credentials", reason="CredentialsPending")
                    emit_credentials_pending(instance, str(e))
                    return ReconcileOutcome.deferred(
                        self.credentials_retry_delay, str(e), credentials_available=False
                    )
                except ManilaUnavailable as e:
                    self.log_warning(meta, str(e), event="inventory", reason="ManilaUnavailable")
                    emit_manila_unavailable(instance)
                    return ReconcileOutcome.done(
                        str(e), credentials_available=True, manila_available=False, share_types=()
                    )

        share_types = tuple(share_type.name for share_type in ctx.share_types)
        add_span_attribute("manila.share_types", len(share_types))
        return ReconcileOutcome.done(
            "all managed objects converged",
            credentials_available=True,
            manila_available=True,
            share_types=share_types,
        )
