"""
Operator alert protocol and data classes.

Defines the interface every alert channel implements plus the alert and
delivery-result records. Concrete channels live in ``channels/``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from sitefactory.core.errors import SiteFactoryError


class AlertSeverity(str, Enum):
    """Alert severity levels."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def _rank(self) -> int:
        return list(AlertSeverity).index(self)

    def __lt__(self, other: AlertSeverity) -> bool:
        return self._rank() < other._rank()

    def __le__(self, other: AlertSeverity) -> bool:
        return self._rank() <= other._rank()

    def __gt__(self, other: AlertSeverity) -> bool:
        return self._rank() > other._rank()

    def __ge__(self, other: AlertSeverity) -> bool:
        return self._rank() >= other._rank()


class ChannelType(str, Enum):
    """Alert channel types."""

    LOG = "log"
    EMAIL = "email"


@dataclass
class Alert:
    """Something a site operator should hear about."""

    severity: AlertSeverity
    title: str
    message: str
    source: str  # site id

    url: str | None = None
    request_id: str | None = None
    error: BaseException | None = None

    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)

    fingerprint: str | None = None

    def __post_init__(self):
        if self.fingerprint is None:
            self.fingerprint = "|".join([self.severity.value, self.source, self.title])

    def error_details(self) -> dict[str, Any] | None:
        if self.error is None:
            return None
        if isinstance(self.error, SiteFactoryError):
            return self.error.to_dict()
        return {"error_type": type(self.error).__name__, "message": str(self.error)}

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "severity": self.severity.value,
            "title": self.title,
            "message": self.message,
            "source": self.source,
            "created_at": self.created_at.isoformat(),
            "fingerprint": self.fingerprint,
        }
        if self.url:
            result["url"] = self.url
        if self.request_id:
            result["request_id"] = self.request_id
        if self.error is not None:
            result["error"] = self.error_details()
        if self.metadata:
            result["metadata"] = self.metadata
        return result


@dataclass
class DeliveryResult:
    """Result of one delivery attempt."""

    channel_name: str
    success: bool
    message: str | None = None
    error: Exception | None = None
    delivered_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def ok(cls, channel_name: str, message: str | None = None) -> DeliveryResult:
        return cls(channel_name=channel_name, success=True, message=message)

    @classmethod
    def fail(cls, channel_name: str, error: Exception) -> DeliveryResult:
        return cls(channel_name=channel_name, success=False, error=error, message=str(error))


@runtime_checkable
class AlertChannel(Protocol):
    """Interface of an alert delivery target."""

    @property
    def name(self) -> str:
        ...

    @property
    def channel_type(self) -> ChannelType:
        ...

    @property
    def min_severity(self) -> AlertSeverity:
        ...

    @property
    def enabled(self) -> bool:
        ...

    def should_send(self, alert: Alert) -> bool:
        ...

    def send(self, alert: Alert) -> DeliveryResult:
        ...


__all__ = [
    "AlertSeverity",
    "ChannelType",
    "Alert",
    "DeliveryResult",
    "AlertChannel",
]
