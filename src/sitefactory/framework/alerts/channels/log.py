"""Log alert channel: writes alerts to the structured log."""

from __future__ import annotations

from typing import Any

from sitefactory.core.logging import get_logger
from sitefactory.framework.alerts.base import BaseChannel
from sitefactory.framework.alerts.protocol import (
    Alert,
    AlertSeverity,
    ChannelType,
    DeliveryResult,
)

_LEVELS = {
    AlertSeverity.INFO: "info",
    AlertSeverity.WARNING: "warning",
    AlertSeverity.ERROR: "error",
    AlertSeverity.CRITICAL: "critical",
}


class LogChannel(BaseChannel):
    """Always-available channel; every site has one."""

    def __init__(
        self,
        name: str = "log",
        *,
        min_severity: AlertSeverity = AlertSeverity.INFO,
        **kwargs: Any,
    ):
        super().__init__(name, ChannelType.LOG, min_severity=min_severity, **kwargs)
        self._log = get_logger("sitefactory.alerts")

    def send(self, alert: Alert) -> DeliveryResult:
        emit = getattr(self._log, _LEVELS[alert.severity])
        fields = {key: value for key, value in alert.to_dict().items() if key not in ("title", "severity")}
        emit("alert", title=alert.title, **fields)
        return DeliveryResult.ok(self._name)
