"""Kopf handlers driving the ManilaDriver controller."""

from __future__ import annotations

import os
from typing import Any

import kopf

from ..constants import API_GROUP_VERSION, KIND_MANILA_DRIVER
from ..controller import ManilaDriverController, OutcomeKind, ReconcileOutcome
from ..kinds import ManagedKind
from ..services.kubernetes.client import KubernetesStore
from ..utils.conditions import (
    set_credentials_available_condition,
    set_manila_available_condition,
    set_ready_condition,
)
from ..utils.errors import sanitize_exception
from ..utils.events import emit_reconcile_succeeded
from ..utils.rate_limit import backoff_delay
from .base import BaseHandler

DRIFT_CHECK_INTERVAL_SECONDS = float(os.getenv("DRIFT_CHECK_INTERVAL_SECONDS", "300"))


class ManilaDriverHandler(BaseHandler):
    """Maps controller outcomes onto kopf retries and the ManilaDriver status."""

    def __init__(self, controller: ManilaDriverController | None = None):
        super().__init__(KIND_MANILA_DRIVER)
        self._controller = controller

    @property
    def controller(self) -> ManilaDriverController:
        if self._controller is None:
            self._controller = ManilaDriverController(KubernetesStore())
        return self._controller

    def reconcile(
        self,
        body: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        retry: int,
    ) -> None:
        """Run a pass and reflect its outcome in the status.

        Raises:
            kopf.PermanentError: If the declaration cannot be reconciled
            kopf.TemporaryError: If the pass has to be retried
        """
        conditions = list(status.get("conditions") or [])
        generation = meta.get("generation")
        try:
            outcome = self.reconcile_with_metrics(body, lambda: self.controller.trigger(meta["name"]))
        except Exception as e:
            message = f"Reconciliation failed: {sanitize_exception(e)}"
            conditions = set_ready_condition(conditions, False, message, generation)
            self.update_resource_status(patch, meta, False, {"conditions": conditions})
            raise kopf.TemporaryError(message, delay=backoff_delay(retry)) from e

        self.apply_outcome(body, outcome, meta, conditions, patch)

    def apply_outcome(
        self,
        body: dict[str, Any],
        outcome: ReconcileOutcome,
        meta: dict[str, Any],
        conditions: list[dict[str, Any]],
        patch: kopf.Patch,
    ) -> None:
        """Translate a reconcile outcome into status and kopf control flow."""
        generation = meta.get("generation")

        if outcome.kind is OutcomeKind.FATAL:
            conditions = set_ready_condition(conditions, False, outcome.message, generation)
            self.update_resource_status(patch, meta, False, {"conditions": conditions})
            raise kopf.PermanentError(outcome.message)

        if outcome.credentials_available is None:
            # Gone or finalized, nothing to report
            return

        conditions = set_credentials_available_condition(
            conditions,
            outcome.credentials_available,
            "Cloud credentials found" if outcome.credentials_available else outcome.message,
            generation,
        )

        if outcome.kind is OutcomeKind.DEFERRED:
            conditions = set_ready_condition(conditions, False, "Waiting for cloud credentials", generation)
            self.update_resource_status(patch, meta, False, {"conditions": conditions})
            raise kopf.TemporaryError(outcome.message, delay=outcome.delay)

        status_data: dict[str, Any] = {}
        if outcome.manila_available is not None:
            conditions = set_manila_available_condition(
                conditions,
                outcome.manila_available,
                "Manila service found" if outcome.manila_available else outcome.message,
                generation,
            )
        if outcome.share_types is not None:
            status_data["shareTypes"] = list(outcome.share_types)

        ready_message = (
            "Manila CSI driver is deployed"
            if outcome.manila_available
            else "Manila is not available, driver workloads were not deployed"
        )
        conditions = set_ready_condition(conditions, True, ready_message, generation)
        status_data["conditions"] = conditions
        self.update_resource_status(patch, meta, True, status_data)
        emit_reconcile_succeeded(body)

    def delete(self, body: dict[str, Any], meta: dict[str, Any], retry: int) -> None:
        """Run the teardown pass of a ManilaDriver being deleted."""
        try:
            outcome = self.reconcile_with_metrics(body, lambda: self.controller.trigger(meta["name"]))
        except Exception as e:
            raise kopf.TemporaryError(
                f"Finalization failed: {sanitize_exception(e)}", delay=backoff_delay(retry)
            ) from e
        if outcome.kind is OutcomeKind.FATAL:
            self.log_warning(meta, outcome.message, event="deletion", reason="InvalidConfiguration")

    def owned_object_changed(self, event_type: str | None, body: dict[str, Any]) -> None:
        """Run a coalesced pass of the ManilaDriver owning a changed object.

        Event handlers are not retried by kopf. A pass that fails or does not
        complete is handed to the ManilaDriver's own handlers, whose retries
        and status reporting then take over.
        """
        if event_type is None:
            # Initial listing, the resume handler covers it
            return
        owner = _manila_driver_owner(body.get("metadata", {}))
        if owner is None:
            return
        name = owner["name"]
        owner_body = {
            "apiVersion": owner.get("apiVersion"),
            "kind": owner.get("kind"),
            "metadata": {"name": name, "uid": owner.get("uid")},
        }
        self.logger.debug(
            f"{body.get('kind')} {body.get('metadata', {}).get('name')} {event_type.lower()}, "
            f"triggering {KIND_MANILA_DRIVER} {name}"
        )
        try:
            outcome = self.reconcile_with_metrics(owner_body, lambda: self.controller.trigger(name, coalesce=True))
        except Exception:
            # Logged, counted and reported by reconcile_with_metrics
            self._hand_over(owner_body, "failed")
            return
        if outcome is not None and outcome.kind is not OutcomeKind.CONTINUE:
            self._hand_over(owner_body, outcome.kind.value)

    def _hand_over(self, owner_body: dict[str, Any], result: str) -> None:
        meta = owner_body["metadata"]
        if self.controller.request_pass(meta["name"]):
            self.log_info(
                meta,
                f"Pass triggered by an owned object {result}, requested a retrying pass",
                event="trigger",
                reason="PassRequested",
            )


def _manila_driver_owner(meta: dict[str, Any]) -> dict[str, Any] | None:
    for ref in meta.get("ownerReferences") or []:
        if ref.get("apiVersion") == API_GROUP_VERSION and ref.get("kind") == KIND_MANILA_DRIVER:
            return ref
    return None


def is_owned(meta: dict[str, Any], **_: Any) -> bool:
    """Kopf filter selecting objects owned by a ManilaDriver."""
    return _manila_driver_owner(meta) is not None


# Global handler instance
_handler = ManilaDriverHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_MANILA_DRIVER)
@kopf.on.update(API_GROUP_VERSION, KIND_MANILA_DRIVER)
@kopf.on.resume(API_GROUP_VERSION, KIND_MANILA_DRIVER)
def handle_manila_driver(
    body: kopf.Body,
    meta: kopf.Meta,
    status: kopf.Status,
    patch: kopf.Patch,
    retry: int,
    **kwargs: Any,
) -> None:
    """Handle ManilaDriver resource reconciliation."""
    _handler.reconcile(dict(body), dict(meta), dict(status), patch, retry)


@kopf.timer(
    API_GROUP_VERSION,
    KIND_MANILA_DRIVER,
    interval=DRIFT_CHECK_INTERVAL_SECONDS,
    initial_delay=DRIFT_CHECK_INTERVAL_SECONDS,
)
def check_manila_driver_drift(
    body: kopf.Body,
    meta: kopf.Meta,
    status: kopf.Status,
    patch: kopf.Patch,
    retry: int,
    **kwargs: Any,
) -> None:
    """Periodically re-run the pass to repair drift of the managed objects."""
    _handler.reconcile(dict(body), dict(meta), dict(status), patch, retry)


@kopf.on.delete(API_GROUP_VERSION, KIND_MANILA_DRIVER, optional=True)
def handle_manila_driver_delete(
    body: kopf.Body,
    meta: kopf.Meta,
    retry: int,
    **kwargs: Any,
) -> None:
    """Handle ManilaDriver resource deletion."""
    _handler.delete(dict(body), dict(meta), retry)


def handle_owned_object_event(type: str | None, body: kopf.Body, **kwargs: Any) -> None:
    """Handle a change of an object owned by a ManilaDriver."""
    _handler.owned_object_changed(type, dict(body))


for _kind in ManagedKind:
    kopf.on.event(_kind.value.api_version, _kind.value.kind, when=is_owned)(handle_owned_object_event)
