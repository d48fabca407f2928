"""
restrules unit tests
"""

import unittest
from .api import APITests, VersioningAPITests
from .cli import StandaloneCLITests
from .load import LoadTests
from .misc import NamingTests, RouteRegistryTests, ShapingTests, StatusMapperTests, VersionRouterTests
from .persistence import StoreTests
from .settings import SettingsTests


TEST_CLASSES = [
    APITests,
    LoadTests,
    NamingTests,
    RouteRegistryTests,
    SettingsTests,
    ShapingTests,
    StandaloneCLITests,
    StatusMapperTests,
    StoreTests,
    VersioningAPITests,
    VersionRouterTests,
]


def get_suite() -> unittest.TestSuite:
    suite = unittest.TestSuite()
    for cls in TEST_CLASSES:
        for fixture in filter(lambda f: f.startswith("test_"), dir(cls)):
            suite.addTest(cls(fixture))
    return suite
