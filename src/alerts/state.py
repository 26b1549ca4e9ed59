"""Persisted state of one site's alert component."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.alerts.schemas import Alert, AlertRule
from src.core.timeutil import from_iso, to_iso


@dataclass
class AlertState:
    """Everything a site's alert component owns.

    ``rule_last_triggered`` is only read for cooldown gating and is only
    written when evaluation creates an alert. ``version`` counts mutations
    and is diagnostic.
    """

    org_id: str | None = None
    site_id: str | None = None
    rules: list[AlertRule] = field(default_factory=list)
    alerts: list[Alert] = field(default_factory=list)
    rule_last_triggered: dict[str, datetime] = field(default_factory=dict)
    version: int = 0

    @property
    def initialized(self) -> bool:
        return self.site_id is not None

    def find_alert(self, alert_id: str) -> Alert | None:
        return next((a for a in self.alerts if a.alert_id == alert_id), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "org_id": self.org_id,
            "site_id": self.site_id,
            "rules": [r.to_dict() for r in self.rules],
            "alerts": [a.to_dict() for a in self.alerts],
            "rule_last_triggered": {
                rule_id: to_iso(ts) for rule_id, ts in self.rule_last_triggered.items()
            },
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AlertState":
        return cls(
            org_id=data.get("org_id"),
            site_id=data.get("site_id"),
            rules=[AlertRule.from_dict(r) for r in data.get("rules", [])],
            alerts=[Alert.from_dict(a) for a in data.get("alerts", [])],
            rule_last_triggered={
                rule_id: from_iso(ts)
                for rule_id, ts in data.get("rule_last_triggered", {}).items()
            },
            version=data.get("version", 0),
        )
