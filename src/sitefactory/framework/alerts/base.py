"""
Alert channel base class.

Provides severity filtering and enable/disable for channel
implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from sitefactory.framework.alerts.protocol import (
    Alert,
    AlertSeverity,
    ChannelType,
    DeliveryResult,
)


class BaseChannel(ABC):
    """Common channel behaviour: a name, a type, a severity floor, a switch."""

    def __init__(
        self,
        name: str,
        channel_type: ChannelType,
        *,
        min_severity: AlertSeverity = AlertSeverity.ERROR,
        enabled: bool = True,
    ):
        self._name = name
        self._channel_type = channel_type
        self._min_severity = min_severity
        self._enabled = enabled

    @property
    def name(self) -> str:
        return self._name

    @property
    def channel_type(self) -> ChannelType:
        return self._channel_type

    @property
    def min_severity(self) -> AlertSeverity:
        return self._min_severity

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def should_send(self, alert: Alert) -> bool:
        return self._enabled and alert.severity >= self._min_severity

    @abstractmethod
    def send(self, alert: Alert) -> DeliveryResult:
        """Deliver *alert*."""
        ...
