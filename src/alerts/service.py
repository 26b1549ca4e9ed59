"""Alert service: per-site rule catalog, alert lifecycle and rule evaluation.

The sole component with side effects on alert state. Each site's state is
loaded once from the ``StateStore``, cached, and saved before every
mutating call returns. All calls for one site run one at a time through
``TenantExecutor``; different sites proceed independently.

Rule logic is delegated to the stateless ``evaluate`` function in
``evaluator.py``; wording comes from ``templates.py``.

Creating an alert and notifying about it are separate steps. If the
process stops after an alert is saved but before notifications go out,
those notifications are never sent (at-most-once delivery).
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable

from src.alerts.config import AlertConfig
from src.alerts.evaluator import EvaluationResult, evaluate, operator_symbol
from src.alerts.rules import default_rules
from src.alerts.schemas import (
    AcknowledgeAlertCommand,
    Alert,
    AlertRule,
    AlertSeverity,
    AlertStatus,
    AlertType,
    CreateAlertCommand,
    DismissAlertCommand,
    MetricsSnapshot,
    ResolveAlertCommand,
    SnoozeAlertCommand,
)
from src.alerts.state import AlertState
from src.alerts.templates import format_decimal, render
from src.core.errors import InvalidStateTransitionError, NotFoundError, NotInitializedError
from src.core.tenancy import TenantExecutor, alert_key
from src.core.timeutil import Clock, utcnow
from src.events.publisher import EventPublisher
from src.events.schemas import AlertTriggeredEvent
from src.observability.logging import tenant_context
from src.observability.metrics import MetricsCollector, get_metrics
from src.storage.state_store import StateStore

logger = logging.getLogger(__name__)

# Statuses each lifecycle command may start from
_ALLOWED_FROM: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.ACKNOWLEDGED: frozenset({AlertStatus.ACTIVE, AlertStatus.SNOOZED}),
    AlertStatus.RESOLVED: frozenset({
        AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED, AlertStatus.SNOOZED,
    }),
    AlertStatus.DISMISSED: frozenset({
        AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED, AlertStatus.SNOOZED,
    }),
    AlertStatus.SNOOZED: frozenset({
        AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED, AlertStatus.SNOOZED,
    }),
}


def _copy(alert: Alert) -> Alert:
    return replace(alert, metadata=dict(alert.metadata))


class AlertService:
    """Orchestrates rule catalog, evaluator, cooldowns and the alert store.

    Every public method is keyed by ``(org_id, site_id)`` and, apart from
    ``initialize``, raises ``NotInitializedError`` for a site that has not
    been initialized.
    """

    def __init__(
        self,
        store: StateStore,
        publisher: EventPublisher,
        config: AlertConfig | None = None,
        executor: TenantExecutor | None = None,
        clock: Clock = utcnow,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._store = store
        self._publisher = publisher
        self._config = config or AlertConfig()
        self._executor = executor or TenantExecutor()
        self._clock = clock
        self._metrics = metrics or get_metrics()
        self._states: dict[str, AlertState] = {}

    # ── State plumbing ───────────────────────────────────

    async def _load(self, key: str) -> AlertState:
        state = self._states.get(key)
        if state is None:
            data = await self._store.load(key)
            state = AlertState.from_dict(data) if data else AlertState()
            self._states[key] = state
        return state

    async def _load_initialized(self, key: str) -> AlertState:
        state = await self._load(key)
        if not state.initialized:
            raise NotInitializedError("Alert component", key)
        return state

    async def _save(self, key: str, state: AlertState) -> None:
        try:
            await self._store.save(key, state.to_dict())
        except Exception:
            # A failed write drops the cached copy; the next call reloads from the store
            self._states.pop(key, None)
            logger.error("Failed to save alert state for %s", key)
            raise

    @asynccontextmanager
    async def _exclusive(self, key: str, org_id: str, site_id: str) -> AsyncIterator[None]:
        async with self._executor.exclusive(key):
            with tenant_context(org_id, site_id):
                yield

    async def _publish(self, event: AlertTriggeredEvent) -> None:
        try:
            await self._publisher.publish(event)
        except Exception as e:
            logger.error("Failed to publish %s for alert %s: %s", event.kind, event.alert_id, e)

    # ── Initialization ───────────────────────────────────

    async def initialize(self, org_id: str, site_id: str) -> None:
        """Create the site's state and seed the default rules. No-op if it exists."""
        key = alert_key(org_id, site_id)
        async with self._exclusive(key, org_id, site_id):
            state = await self._load(key)
            if state.initialized:
                return

            state.org_id = org_id
            state.site_id = site_id
            state.version = 1
            if self._config.seed_default_rules:
                state.rules = default_rules()

            await self._save(key, state)
            logger.info("Alert component initialized with %d rules", len(state.rules))

    # ── Creation & lifecycle ─────────────────────────────

    async def create_alert(
        self,
        org_id: str,
        site_id: str,
        command: CreateAlertCommand,
    ) -> Alert:
        """Create an Active alert, persist it and publish ``alert.triggered``.

        No deduplication happens here; evaluation relies on rule cooldowns.
        """
        key = alert_key(org_id, site_id)
        async with self._exclusive(key, org_id, site_id):
            state = await self._load_initialized(key)
            alert = await self._create_locked(key, state, command, self._clock())
            return _copy(alert)

    async def _create_locked(
        self,
        key: str,
        state: AlertState,
        command: CreateAlertCommand,
        now: datetime,
    ) -> Alert:
        alert = Alert(
            org_id=state.org_id,
            site_id=state.site_id,
            type=AlertType(command.type),
            severity=AlertSeverity(command.severity),
            title=command.title,
            message=command.message,
            entity_id=command.entity_id,
            entity_type=command.entity_type,
            triggered_at=now,
            status=AlertStatus.ACTIVE,
            metadata=dict(command.metadata or {}),
        )
        state.alerts.append(alert)
        state.version += 1
        await self._save(key, state)

        await self._publish(AlertTriggeredEvent(
            org_id=alert.org_id,
            site_id=alert.site_id,
            alert_id=alert.alert_id,
            alert_type=alert.type.value,
            severity=alert.severity.value,
            title=alert.title,
            message=alert.message,
            metadata=dict(alert.metadata),
            occurred_at=now,
        ))
        self._metrics.record_alert_created(alert.type.value, alert.severity.value)
        logger.info(
            "Alert %s created (%s, %s): %s",
            alert.alert_id, alert.type.value, alert.severity.value, alert.title,
        )
        return alert

    async def _transition(
        self,
        org_id: str,
        site_id: str,
        alert_id: str,
        target: AlertStatus,
        apply: Callable[[Alert, datetime], None],
    ) -> Alert:
        key = alert_key(org_id, site_id)
        async with self._exclusive(key, org_id, site_id):
            state = await self._load_initialized(key)
            alert = state.find_alert(alert_id)
            if alert is None:
                raise NotFoundError("Alert", alert_id)
            if alert.status not in _ALLOWED_FROM[target]:
                raise InvalidStateTransitionError(
                    f"Cannot move alert {alert_id} from {alert.status.value} "
                    f"to {target.value}"
                )

            apply(alert, self._clock())
            alert.status = target
            state.version += 1
            await self._save(key, state)
            logger.info("Alert %s -> %s", alert_id, target.value)
            return _copy(alert)

    async def acknowledge(
        self, org_id: str, site_id: str, command: AcknowledgeAlertCommand,
    ) -> Alert:
        def apply(alert: Alert, now: datetime) -> None:
            alert.acknowledged_at = now
            alert.acknowledged_by = command.acknowledged_by

        return await self._transition(
            org_id, site_id, command.alert_id, AlertStatus.ACKNOWLEDGED, apply,
        )

    async def resolve(
        self, org_id: str, site_id: str, command: ResolveAlertCommand,
    ) -> Alert:
        def apply(alert: Alert, now: datetime) -> None:
            alert.resolved_at = now
            alert.resolved_by = command.resolved_by
            alert.resolution_notes = command.resolution_notes

        return await self._transition(
            org_id, site_id, command.alert_id, AlertStatus.RESOLVED, apply,
        )

    async def snooze(
        self, org_id: str, site_id: str, command: SnoozeAlertCommand,
    ) -> Alert:
        """Hide an alert until ``now + duration`` (config default when unset).

        Allowed from Active, Acknowledged and Snoozed; snoozing again
        restarts the window. Resolved and Dismissed alerts cannot be
        snoozed and raise InvalidStateTransitionError.
        """
        duration = command.duration or timedelta(
            minutes=self._config.default_snooze_minutes
        )

        def apply(alert: Alert, now: datetime) -> None:
            alert.snoozed_until = now + duration
            logger.debug(
                "Alert %s snoozed by %s until %s",
                alert.alert_id, command.snoozed_by, alert.snoozed_until,
            )

        return await self._transition(
            org_id, site_id, command.alert_id, AlertStatus.SNOOZED, apply,
        )

    async def dismiss(
        self, org_id: str, site_id: str, command: DismissAlertCommand,
    ) -> Alert:
        def apply(alert: Alert, now: datetime) -> None:
            alert.dismissed_at = now
            alert.dismissed_by = command.dismissed_by
            alert.dismiss_reason = command.reason

        return await self._transition(
            org_id, site_id, command.alert_id, AlertStatus.DISMISSED, apply,
        )

    # ── Queries ──────────────────────────────────────────

    async def get_alert(self, org_id: str, site_id: str, alert_id: str) -> Alert | None:
        key = alert_key(org_id, site_id)
        async with self._exclusive(key, org_id, site_id):
            state = await self._load_initialized(key)
            alert = state.find_alert(alert_id)
            return _copy(alert) if alert is not None else None

    async def get_alerts(
        self,
        org_id: str,
        site_id: str,
        *,
        status: AlertStatus | None = None,
        type: AlertType | None = None,
        limit: int | None = None,
    ) -> list[Alert]:
        """Alerts filtered by status/type, newest first, optionally truncated."""
        key = alert_key(org_id, site_id)
        async with self._exclusive(key, org_id, site_id):
            state = await self._load_initialized(key)
            alerts = [
                a for a in state.alerts
                if (status is None or a.status == status)
                and (type is None or a.type == type)
            ]
            alerts.sort(key=lambda a: a.triggered_at, reverse=True)
            if limit is not None:
                alerts = alerts[:limit]
            return [_copy(a) for a in alerts]

    async def get_active_alerts(self, org_id: str, site_id: str) -> list[Alert]:
        """Active alerts plus snoozed ones whose window has elapsed.

        Ordered by severity (most severe first), then newest first. The
        snoozed alerts keep their stored status; they are only reported
        as active.
        """
        key = alert_key(org_id, site_id)
        async with self._exclusive(key, org_id, site_id):
            state = await self._load_initialized(key)
            now = self._clock()
            active = [a for a in state.alerts if a.is_active_at(now)]
            active.sort(key=lambda a: (a.severity.rank, a.triggered_at), reverse=True)
            return [_copy(a) for a in active]

    async def get_active_alert_count(self, org_id: str, site_id: str) -> int:
        """Number of alerts still needing attention (Active or Acknowledged)."""
        key = alert_key(org_id, site_id)
        async with self._exclusive(key, org_id, site_id):
            state = await self._load_initialized(key)
            return sum(
                1 for a in state.alerts
                if a.status in (AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED)
            )

    async def get_counts_by_type(self, org_id: str, site_id: str) -> dict[AlertType, int]:
        """Open (Active or Acknowledged) alert counts grouped by type."""
        key = alert_key(org_id, site_id)
        async with self._exclusive(key, org_id, site_id):
            state = await self._load_initialized(key)
            counts: dict[AlertType, int] = {}
            for alert in state.alerts:
                if alert.status in (AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED):
                    counts[alert.type] = counts.get(alert.type, 0) + 1
            return counts

    # ── Rule catalog ─────────────────────────────────────

    async def get_rules(self, org_id: str, site_id: str) -> list[AlertRule]:
        key = alert_key(org_id, site_id)
        async with self._exclusive(key, org_id, site_id):
            state = await self._load_initialized(key)
            return [replace(r) for r in state.rules]

    async def update_rule(self, org_id: str, site_id: str, rule: AlertRule) -> AlertRule:
        """Upsert a rule by ``rule_id``: replace it in place, or append it."""
        key = alert_key(org_id, site_id)
        async with self._exclusive(key, org_id, site_id):
            state = await self._load_initialized(key)
            stored = replace(rule)
            for i, existing in enumerate(state.rules):
                if existing.rule_id == rule.rule_id:
                    state.rules[i] = stored
                    logger.info("Rule %s updated", rule.rule_id)
                    break
            else:
                state.rules.append(stored)
                logger.info("Rule %s added", rule.rule_id)

            state.version += 1
            await self._save(key, state)
            return replace(stored)

    # ── Evaluation ───────────────────────────────────────

    async def evaluate_rules(
        self,
        org_id: str,
        site_id: str,
        snapshot: MetricsSnapshot,
    ) -> list[Alert]:
        """Main entry point: evaluate every enabled rule against a snapshot.

        Rules run in catalog order. A rule inside its cooldown window is
        skipped; a rule that raises is logged and skipped without
        affecting the others.

        Args:
            org_id: Organization id.
            site_id: Site id.
            snapshot: Metrics for one entity.

        Returns:
            Alerts created during this cycle.
        """
        key = alert_key(org_id, site_id)
        async with self._exclusive(key, org_id, site_id):
            state = await self._load_initialized(key)
            if not self._config.evaluation_enabled:
                logger.debug("Rule evaluation disabled, snapshot ignored")
                return []

            now = self._clock()
            created: list[Alert] = []

            for rule in list(state.rules):
                if not rule.enabled:
                    continue
                try:
                    alert = await self._evaluate_rule(key, state, rule, snapshot, now)
                except Exception as e:
                    self._metrics.record_rule_evaluation("error")
                    logger.error(
                        "Rule %s (%s) failed on %s %s: %s",
                        rule.rule_id, rule.name,
                        snapshot.entity_type, snapshot.entity_id, e,
                    )
                    # Earlier alerts are saved; discard this rule's partial changes
                    self._states.pop(key, None)
                    state = await self._load_initialized(key)
                    continue
                if alert is not None:
                    created.append(alert)

            if created:
                await self._save(key, state)
                logger.info(
                    "Evaluation created %d alerts for %s %s",
                    len(created), snapshot.entity_type, snapshot.entity_name or snapshot.entity_id,
                )
            return [_copy(a) for a in created]

    def _in_cooldown(self, state: AlertState, rule: AlertRule, now: datetime) -> bool:
        if not rule.cooldown:
            return False
        last = state.rule_last_triggered.get(rule.rule_id)
        return last is not None and now - last < rule.cooldown

    async def _evaluate_rule(
        self,
        key: str,
        state: AlertState,
        rule: AlertRule,
        snapshot: MetricsSnapshot,
        now: datetime,
    ) -> Alert | None:
        if self._in_cooldown(state, rule, now):
            self._metrics.record_rule_evaluation("cooldown")
            logger.debug("Rule %s in cooldown", rule.rule_id)
            return None

        result = evaluate(rule, snapshot)
        if not result.triggered:
            self._metrics.record_rule_evaluation("not_triggered")
            if result.metric_missing:
                logger.debug("Rule %s skipped: %s", rule.rule_id, result.message)
            return None

        self._metrics.record_rule_evaluation("triggered")
        title, message = render(rule, snapshot, result)
        command = CreateAlertCommand(
            type=rule.type,
            severity=rule.default_severity,
            title=title,
            message=message,
            entity_id=snapshot.entity_id,
            entity_type=snapshot.entity_type,
            metadata=self._build_metadata(rule, snapshot, result),
        )
        # Saved together with the alert so a failed write loses both
        state.rule_last_triggered[rule.rule_id] = now
        return await self._create_locked(key, state, command, now)

    @staticmethod
    def _build_metadata(
        rule: AlertRule,
        snapshot: MetricsSnapshot,
        result: EvaluationResult,
    ) -> dict[str, str]:
        metadata = {
            "ruleId": rule.rule_id,
            "ruleName": rule.name,
            "metric": rule.metric,
            "actualValue": format_decimal(result.actual_value),
            "thresholdValue": format_decimal(result.threshold_value),
            "operator": operator_symbol(rule.operator),
            "entityName": snapshot.entity_name or "",
        }
        # Snapshot context wins on key collisions
        metadata.update(snapshot.context)
        return metadata
