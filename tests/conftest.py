"""Shared pytest fixtures for kaka tests."""

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest
# Imported up front so restoring sys.modules after a mocked test keeps them
from PIL import Image, ImageDraw  # noqa: F401

# Add scripts to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "scripts"))

from tests.fixtures.fakes import (  # noqa: E402
    FakeOverlayFactory,
    FakePermissions,
    FakeWindowRegistry,
    FakeWorkspace,
    ManualScheduler,
)
from tests.fixtures.sample_data import BROWSER, CHAT, EDITOR  # noqa: E402

# Modules that import PyObjC at load time and must be re-imported under mocks
PYOBJC_BACKED_MODULES = (
    "kaka",
    "overlay",
    "permissions",
    "scheduler",
    "window_tracker",
    "workspace",
)


def forget_modules():
    for name in PYOBJC_BACKED_MODULES:
        sys.modules.pop(name, None)


# =============================================================================
# MOCK PYOBJC FIXTURES
# =============================================================================


@pytest.fixture
def mock_pyobjc():
    """Mock all PyObjC modules for cross-platform testing."""
    from tests.fixtures.mock_pyobjc import build_mock_modules, reset_mock_state

    reset_mock_state()
    forget_modules()
    mocks = build_mock_modules()
    with patch.dict(sys.modules, mocks):
        yield mocks
    forget_modules()
    reset_mock_state()


@pytest.fixture
def screens():
    """Single 1440x900 primary screen."""
    from tests.fixtures.mock_pyobjc import MockNSScreen

    MockNSScreen.set_screens([(0, 0, 1440, 900)])
    return MockNSScreen


# =============================================================================
# ENGINE FIXTURES
# =============================================================================


@pytest.fixture
def engine_env():
    """FocusSessionEngine wired to in-memory collaborators."""
    from focus_engine import FocusSessionEngine

    env = SimpleNamespace(
        workspace=FakeWorkspace([EDITOR, BROWSER, CHAT]),
        windows=FakeWindowRegistry(),
        overlays=FakeOverlayFactory(),
        scheduler=ManualScheduler(),
        permissions=FakePermissions(),
        events=[],
    )
    env.engine = FocusSessionEngine(
        workspace=env.workspace,
        windows=env.windows,
        overlays=env.overlays,
        scheduler=env.scheduler,
        permissions=env.permissions,
    )
    env.engine.add_listener(env.events.append)
    return env


@pytest.fixture
def focused(engine_env):
    """Engine with a running session on EDITOR."""
    assert engine_env.engine.start_session(EDITOR)
    return engine_env
