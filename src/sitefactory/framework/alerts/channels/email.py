"""Email alert channel, delivered through the site's Mailer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sitefactory.core.errors import MailError
from sitefactory.framework.alerts.base import BaseChannel
from sitefactory.framework.alerts.protocol import (
    Alert,
    AlertSeverity,
    ChannelType,
    DeliveryResult,
)

if TYPE_CHECKING:
    from sitefactory.framework.mailer import Mailer


class EmailChannel(BaseChannel):
    """
    Mails alerts to the site administrators.

    SMTP details belong to the Mailer; this channel only formats the
    message and picks the recipients.
    """

    def __init__(
        self,
        mailer: Mailer,
        recipients: list[str],
        *,
        name: str = "email",
        min_severity: AlertSeverity = AlertSeverity.ERROR,
        **kwargs: Any,
    ):
        super().__init__(name, ChannelType.EMAIL, min_severity=min_severity, **kwargs)
        self._mailer = mailer
        self._recipients = recipients

    def _build_body(self, alert: Alert) -> str:
        text = f"""{alert.severity.value}: {alert.title}

Site: {alert.source}
URL: {alert.url or "N/A"}
Time: {alert.created_at.isoformat()}

{alert.message}
"""
        if alert.error is not None:
            text += f"\nError: {alert.error}"
        return text

    def send(self, alert: Alert) -> DeliveryResult:
        try:
            self._mailer.send_message(
                self._recipients,
                f"[{alert.severity.value}] {alert.source}: {alert.title}",
                self._build_body(alert),
            )
        except MailError as e:
            return DeliveryResult.fail(self._name, e)
        return DeliveryResult.ok(self._name)
