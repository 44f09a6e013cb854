"""
Request handling for sitefactory sites.

``RequestHandler`` turns one :class:`SiteRequest` into one
:class:`Response`; ``create_app`` serves it through FastAPI.
"""

from sitefactory.web.handler import RequestHandler
from sitefactory.web.outcomes import OutcomeKind, StepOutcome
from sitefactory.web.request import SiteRequest, Upload
from sitefactory.web.response import Cookie, Response
from sitefactory.web.app import create_app

__all__ = [
    "Cookie",
    "OutcomeKind",
    "RequestHandler",
    "Response",
    "SiteRequest",
    "StepOutcome",
    "Upload",
    "create_app",
]
