"""Tests for scripts/kaka.py - command line and session wiring."""

import copy
import logging

import pytest

from settings import DEFAULT_SETTINGS
from tests.fixtures.mock_pyobjc import (
    MockNSTimer,
    MockNSWindow,
    MockNSWorkspace,
    MockRunningApp,
)


@pytest.fixture
def kaka(mock_pyobjc, screens):
    """Provide kaka module with mocked Cocoa and a few running apps."""
    import kaka
    MockNSWorkspace.set_apps([
        MockRunningApp(100, "Editor", "com.example.editor"),
        MockRunningApp(200, "Browser", "com.example.browser"),
    ])
    return kaka


@pytest.fixture
def settings():
    return copy.deepcopy(DEFAULT_SETTINGS)


@pytest.fixture
def event_loop(kaka, mocker):
    """Keep run_session from blocking or installing real handlers."""
    mocker.patch("signal.signal")
    mocker.patch("atexit.register")
    return mocker.patch.object(kaka.AppHelper, "runEventLoop")


# =============================================================================
# ARGUMENTS
# =============================================================================


class TestParseArgs:
    """Tests for parse_args()."""

    def test_target(self, kaka):
        _, args = kaka.parse_args(["Editor"])
        assert args.target == "Editor"
        assert not args.list
        assert not args.check

    def test_flags(self, kaka):
        _, args = kaka.parse_args(["--list", "--debug"])
        assert args.target is None
        assert args.list
        assert args.debug

    def test_short_flags(self, kaka):
        _, args = kaka.parse_args(["-c"])
        assert args.check


class TestMain:
    """Tests for main() dispatch."""

    def test_list(self, kaka, capsys):
        assert kaka.main(["--list"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 2
        assert "Browser" in lines[0]
        assert "com.example.browser" in lines[0]
        assert "Editor" in lines[1]

    @pytest.mark.parametrize("granted, code", [(True, 0), (False, 1)])
    def test_check(self, kaka, mocker, granted, code):
        mocker.patch.object(kaka.permissions, "main", return_value=granted)
        assert kaka.main(["--check"]) == code

    def test_missing_target_prints_usage(self, kaka, capsys):
        assert kaka.main([]) == 2
        assert "usage" in capsys.readouterr().err

    def test_debug_raises_log_level(self, kaka):
        root = logging.getLogger()
        previous = root.level
        try:
            kaka.main(["--debug", "--list"])
            assert root.level == logging.DEBUG
        finally:
            root.setLevel(previous)

    def test_target_runs_session(self, kaka, mocker):
        run = mocker.patch.object(kaka, "run_session", return_value=0)
        assert kaka.main(["Editor"]) == 0
        assert run.call_args[0][0] == "Editor"
        assert run.call_args[0][1]["pollInterval"] == 0.1


# =============================================================================
# ENGINE WIRING
# =============================================================================


class TestBuildEngine:
    """Tests for build_engine()."""

    def test_settings_applied(self, kaka, settings):
        settings['pollInterval'] = 0.25
        settings['minWindowSize'] = 80
        settings['overlay']['headline'] = 'FOCUS'
        engine = kaka.build_engine(settings, kaka.RunLoopScheduler())

        assert engine.poll_interval == 0.25
        assert engine.windows.min_window_size == 80
        assert engine.overlays.headline == 'FOCUS'

    def test_denied_schedules_alert(self, kaka, settings, mock_pyobjc):
        mock_pyobjc["Quartz"].CGPreflightScreenCaptureAccess.return_value = False
        engine = kaka.build_engine(settings, kaka.RunLoopScheduler())

        assert engine.permissions.can_enumerate_windows() is False
        assert len(MockNSTimer._timers) == 1
        timer = MockNSTimer._timers[0]
        assert timer._interval == kaka.PERMISSION_PROMPT_DELAY
        assert timer._repeats is False

        alert = kaka.NSAlert.alloc.return_value.init.return_value
        alert.runModal.return_value = kaka.NSAlertFirstButtonReturn
        timer.fire()

        alert.runModal.assert_called_once_with()
        assert len(MockNSWorkspace.sharedWorkspace().opened_urls) == 1

    def test_alert_dismissed(self, kaka, settings, mock_pyobjc):
        mock_pyobjc["Quartz"].CGPreflightScreenCaptureAccess.return_value = False
        engine = kaka.build_engine(settings, kaka.RunLoopScheduler())
        engine.permissions.can_enumerate_windows()

        alert = kaka.NSAlert.alloc.return_value.init.return_value
        alert.runModal.return_value = 1001
        MockNSTimer._timers[0].fire()

        assert MockNSWorkspace.sharedWorkspace().opened_urls == []

    def test_prompt_disabled(self, kaka, settings, mock_pyobjc):
        settings['permissions']['promptOnDenied'] = False
        mock_pyobjc["Quartz"].CGPreflightScreenCaptureAccess.return_value = False
        engine = kaka.build_engine(settings, kaka.RunLoopScheduler())

        assert engine.permissions.can_enumerate_windows() is False
        assert MockNSTimer._timers == []


# =============================================================================
# SESSION
# =============================================================================


class TestRunSession:
    """Tests for run_session()."""

    def test_unknown_target(self, kaka, settings, event_loop, capsys):
        assert kaka.run_session("Nothing", settings) == 1
        assert "Try --list" in capsys.readouterr().err
        event_loop.assert_not_called()

    def test_runs_until_loop_exits(self, kaka, settings, event_loop,
                                   mock_pyobjc, capsys):
        mock_pyobjc["Quartz"].CGPreflightScreenCaptureAccess.return_value = True
        center = MockNSWorkspace.sharedWorkspace().notificationCenter()
        observed = []
        event_loop.side_effect = lambda **kw: observed.append(
            list(center.observers)
        )

        assert kaka.run_session("editor", settings) == 0

        event_loop.assert_called_once_with(installInterrupt=True)
        assert len(observed[0]) == 1
        assert center.observers == []
        assert MockNSWorkspace._apps[0].activations == 1
        assert "Focused on Editor" in capsys.readouterr().out

    def test_accessory_policy(self, kaka, settings, event_loop):
        kaka.run_session("editor", settings)
        app = kaka.NSApplication.sharedApplication.return_value
        app.setActivationPolicy_.assert_called_once_with(
            kaka.NSApplicationActivationPolicyAccessory
        )

    def test_launch_permission_check(self, kaka, settings, event_loop,
                                     mock_pyobjc):
        """A missing permission is surfaced before the first distraction."""
        mock_pyobjc["Quartz"].CGPreflightScreenCaptureAccess.return_value = False
        kaka.run_session("editor", settings)
        assert [t._interval for t in MockNSTimer._timers] == \
            [kaka.PERMISSION_PROMPT_DELAY]

    def test_distraction_covered_during_loop(self, kaka, settings, event_loop,
                                             mock_pyobjc):
        mock_pyobjc["Quartz"].CGPreflightScreenCaptureAccess.return_value = False
        center = MockNSWorkspace.sharedWorkspace().notificationCenter()
        covers = []

        def loop(**kw):
            center.post('NSWorkspaceDidActivateApplicationNotification', {
                'NSWorkspaceApplicationKey': MockNSWorkspace._apps[1],
            })
            covers.extend(MockNSWindow.instances)

        event_loop.side_effect = loop
        kaka.run_session("editor", settings)

        assert len(covers) == 1
        assert covers[0].frame().as_tuple() == (0, 0, 1440, 900)
        assert covers[0]._closed
