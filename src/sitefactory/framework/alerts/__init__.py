"""
Operator alerts.

Each Factory owns an ``AlertRegistry`` with a log channel and, when the
site has an ``admin_email``, an email channel.
"""

from sitefactory.framework.alerts.base import BaseChannel
from sitefactory.framework.alerts.channels import EmailChannel, LogChannel
from sitefactory.framework.alerts.protocol import (
    Alert,
    AlertChannel,
    AlertSeverity,
    ChannelType,
    DeliveryResult,
)
from sitefactory.framework.alerts.registry import AlertRegistry

__all__ = [
    # Enums
    "AlertSeverity",
    "ChannelType",
    # Data classes
    "Alert",
    "DeliveryResult",
    # Protocols
    "AlertChannel",
    # Base class
    "BaseChannel",
    # Implementations
    "EmailChannel",
    "LogChannel",
    # Registry
    "AlertRegistry",
]
