"""
ORM layer: declarative base, managed-record contract and per-site sessions.
"""

from sitefactory.core.orm.base import ManagedBase, ManagedRecord
from sitefactory.core.orm.session import (
    SiteSession,
    build_url,
    create_site_engine,
    site_session_factory,
)

__all__ = [
    "ManagedBase",
    "ManagedRecord",
    "SiteSession",
    "build_url",
    "create_site_engine",
    "site_session_factory",
]
