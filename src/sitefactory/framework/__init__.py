"""
sitefactory framework: the per-site Factory and what it hands out.
"""

from sitefactory.framework.factory import Factory
from sitefactory.framework.ghost import NEW_ID, Ghost
from sitefactory.framework.instances import SINGLETON_KEY, InstanceRegistry
from sitefactory.framework.listing import ObjectList, Pager
from sitefactory.framework.mailer import Mailer
from sitefactory.framework.operations import OPERATION_NAMES, Operation, resolve_operation
from sitefactory.framework.registry import ClassRegistry, ManagedClass
from sitefactory.framework.templates import TemplateEngine

__all__ = [
    "ClassRegistry",
    "Factory",
    "Ghost",
    "InstanceRegistry",
    "Mailer",
    "ManagedClass",
    "NEW_ID",
    "OPERATION_NAMES",
    "ObjectList",
    "Operation",
    "Pager",
    "SINGLETON_KEY",
    "TemplateEngine",
    "resolve_operation",
]
