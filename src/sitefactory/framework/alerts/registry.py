"""Alert registry: routes alerts to every matching channel."""

from __future__ import annotations

from sitefactory.core.logging import get_logger
from sitefactory.framework.alerts.protocol import (
    Alert,
    AlertChannel,
    ChannelType,
    DeliveryResult,
)

log = get_logger(__name__)


class AlertRegistry:
    """
    Named alert channels for one site.

    A channel that raises while sending is recorded as a failed delivery;
    alerting never interrupts the code path that raised the alert.
    """

    def __init__(self):
        self._channels: dict[str, AlertChannel] = {}

    def register(self, channel: AlertChannel) -> None:
        self._channels[channel.name] = channel

    def unregister(self, name: str) -> None:
        self._channels.pop(name, None)

    def get(self, name: str) -> AlertChannel | None:
        return self._channels.get(name)

    def list_channels(self) -> list[str]:
        return sorted(self._channels.keys())

    def list_by_type(self, channel_type: ChannelType) -> list[str]:
        return [name for name, channel in self._channels.items() if channel.channel_type == channel_type]

    def send(self, alert: Alert, channel_name: str) -> DeliveryResult:
        """Send alert to a specific channel."""
        channel = self._channels.get(channel_name)
        if not channel:
            return DeliveryResult.fail(channel_name, ValueError(f"Channel not found: {channel_name}"))
        if not channel.should_send(alert):
            return DeliveryResult(channel_name=channel_name, success=True, message="Filtered (severity)")
        return self._deliver(channel, alert)

    def send_to_all(self, alert: Alert) -> list[DeliveryResult]:
        """Send alert to all matching channels."""
        return [
            self._deliver(channel, alert)
            for channel in list(self._channels.values())
            if channel.should_send(alert)
        ]

    @staticmethod
    def _deliver(channel: AlertChannel, alert: Alert) -> DeliveryResult:
        try:
            result = channel.send(alert)
        except Exception as exc:  # noqa: BLE001
            result = DeliveryResult.fail(channel.name, exc)
        if not result.success:
            log.warning("alerts.delivery_failed", channel=channel.name, title=alert.title, error=result.message)
        return result
