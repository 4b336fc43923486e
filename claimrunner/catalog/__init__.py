"""Test case catalog: file loading, validation and lookup."""

from .catalog import GROUP_ORDER, TestCaseCatalog, get_catalog, set_catalog
from .loader import TestCaseLoader
from .records import TestCaseRecord

__all__ = [
    "GROUP_ORDER",
    "TestCaseCatalog",
    "get_catalog",
    "set_catalog",
    "TestCaseLoader",
    "TestCaseRecord",
]
