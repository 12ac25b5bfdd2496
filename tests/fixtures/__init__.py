# Test fixtures package
from tests.fixtures.fakes import (
    FakeOverlayFactory,
    FakePermissions,
    FakeWindowRegistry,
    FakeWorkspace,
    ManualScheduler,
)
from tests.fixtures.mock_pyobjc import (
    MockNSScreen,
    MockNSWindow,
    MockNSWorkspace,
    MockQuartz,
    build_mock_modules,
)

__all__ = [
    "FakeOverlayFactory",
    "FakePermissions",
    "FakeWindowRegistry",
    "FakeWorkspace",
    "ManualScheduler",
    "MockNSScreen",
    "MockNSWindow",
    "MockNSWorkspace",
    "MockQuartz",
    "build_mock_modules",
]
