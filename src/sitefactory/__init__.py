"""
sitefactory: one process, many sites.

A :class:`Factory` per site holds the site's layered configuration, the
data classes it manages (addressed by moniker) and lazily built services:
database sessions, templates, mail and operator alerts.
:class:`~sitefactory.web.RequestHandler` drives a page request through a
fixed sequence of steps using the Factory.

Examples:
    >>> from sitefactory import Factory
    >>> factory = Factory.instance("music")
    >>> factory.list("album", sortby="title").total
    12
"""

__version__ = "0.1.0"

from sitefactory.core.config import ConfigSchema, ConfigStore, get_settings  # noqa: E402
from sitefactory.core.errors import (  # noqa: E402
    FatalError,
    NotFoundError,
    ServerError,
    SiteFactoryError,
)
from sitefactory.core.orm import ManagedBase, ManagedRecord  # noqa: E402
from sitefactory.framework import Factory, Ghost, ObjectList, Pager  # noqa: E402

__all__ = [
    "ConfigSchema",
    "ConfigStore",
    "Factory",
    "FatalError",
    "Ghost",
    "ManagedBase",
    "ManagedRecord",
    "NotFoundError",
    "ObjectList",
    "Pager",
    "ServerError",
    "SiteFactoryError",
    "__version__",
    "get_settings",
]
