"""Alert channel implementations, one delivery target per module."""

from sitefactory.framework.alerts.channels.email import EmailChannel
from sitefactory.framework.alerts.channels.log import LogChannel

__all__ = [
    "EmailChannel",
    "LogChannel",
]
