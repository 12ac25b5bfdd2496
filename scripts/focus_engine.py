"""
Kaka focus engine - session state machine and overlay lifecycle.

States: inactive -> on_target <-> distracted. Whenever a non-target app is
activated during a session, its windows are covered; a 100ms reconciliation
poll keeps the covers glued to those windows as they move, resize, open and
close. When no window geometry is available, every screen is covered instead.

The engine owns every overlay it creates. All collaborators are injected:

- workspace: running_applications(), activate(app),
  own_bundle_identifier(), own_process_id()
- windows: list_windows(pid), screen_frames()
- overlays: create(rect, on_return), update_frame(handle, rect),
  destroy(handle)
- scheduler: call_repeating(interval, callback) -> task with cancel()
- permissions (optional): can_enumerate_windows()

Everything runs on the main thread; activation events and timer ticks never
interleave.
"""

import logging
from typing import Callable, Dict, List, Optional

from models import (
    DISTRACTED,
    INACTIVE,
    ON_TARGET,
    AppIdentity,
    SessionSnapshot,
    TrackedWindow,
)
from settings import DEFAULT_POLL_INTERVAL

logger = logging.getLogger(__name__)


class Session:
    """Read-only view of the focus session. Only the engine mutates it."""

    def __init__(self):
        self._state = INACTIVE
        self._target_app = None
        self._distracting_app = None

    @property
    def state(self) -> str:
        return self._state

    @property
    def target_app(self) -> Optional[AppIdentity]:
        return self._target_app

    @property
    def distracting_app(self) -> Optional[AppIdentity]:
        return self._distracting_app

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(self._state, self._target_app,
                               self._distracting_app)


class FocusSessionEngine:
    """Focus session state machine; sole owner of cover overlays."""

    def __init__(self, workspace, windows, overlays, scheduler,
                 permissions=None, poll_interval: float = DEFAULT_POLL_INTERVAL):
        self.workspace = workspace
        self.windows = windows
        self.overlays = overlays
        self.scheduler = scheduler
        self.permissions = permissions
        self.poll_interval = poll_interval

        self.session = Session()
        self._window_overlays: Dict[int, object] = {}
        self._fullscreen_overlays: List[object] = []
        self._poll_task = None
        # Bumped whenever covering restarts or stops; stale ticks compare it
        self._poll_generation = 0
        self._listeners: List[Callable[[SessionSnapshot], None]] = []

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def window_overlays(self) -> Dict[int, object]:
        """window_id -> overlay handle (copy)."""
        return dict(self._window_overlays)

    @property
    def fullscreen_overlays(self) -> List[object]:
        return list(self._fullscreen_overlays)

    @property
    def in_fallback(self) -> bool:
        return bool(self._fullscreen_overlays)

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None

    def add_listener(self, callback: Callable[[SessionSnapshot], None]):
        """Call callback with a snapshot after every state change.

        Returns a function that removes the listener.
        """
        self._listeners.append(callback)

        def remove():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return remove

    def _notify(self):
        snapshot = self.session.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Session listener failed")

    def _set_state(self, state: str, target_app=None, distracting_app=None):
        session = self.session
        changed = (
            session.state != state
            or session.target_app is not target_app
            or session.distracting_app is not distracting_app
        )
        session._state = state
        session._target_app = target_app
        session._distracting_app = distracting_app
        if changed:
            logger.debug(f"Session -> {state} (target={_name(target_app)}, "
                         f"distracting={_name(distracting_app)})")
            self._notify()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def running_applications(self) -> List[AppIdentity]:
        try:
            return list(self.workspace.running_applications())
        except Exception as e:
            logger.warning(f"Could not list running applications: {e}")
            return []

    def select_target(self, app: AppIdentity) -> bool:
        """Choose the app to focus on. Only allowed while inactive."""
        if self.session.state != INACTIVE:
            logger.debug("Ignoring target selection during an active session")
            return False
        self._set_state(INACTIVE, target_app=app)
        return True

    def start_session(self, target: AppIdentity = None) -> bool:
        """Start focusing on target (or the selected app).

        No-op returning False when there is no target or it is not running.
        """
        target = target or self.session.target_app
        if target is None:
            logger.debug("start_session without a target")
            return False
        if target not in self.running_applications():
            logger.info(f"{target.name} (pid {target.process_id}) is not running")
            return False

        self._stop_covering()
        self._set_state(ON_TARGET, target_app=target)
        self._activate(target)
        logger.info(f"Focus session started on {target.name}")
        return True

    def stop_session(self):
        """End the session from any state."""
        self._stop_covering()
        was_active = self.session.state != INACTIVE
        self._set_state(INACTIVE)
        if was_active:
            logger.info("Focus session stopped")

    def return_to_target(self):
        """Leave the distraction and bring the target back to front."""
        if self.session.state != DISTRACTED:
            return
        target = self.session.target_app
        self._activate(target)
        self._stop_covering()
        self._set_state(ON_TARGET, target_app=target)

    def shutdown(self):
        """Release everything; used at process exit."""
        self.stop_session()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Activation events
    # ------------------------------------------------------------------

    def _is_own_app(self, app: AppIdentity) -> bool:
        own_bundle = self.workspace.own_bundle_identifier()
        if own_bundle and app.bundle_identifier == own_bundle:
            return True
        return app.process_id == self.workspace.own_process_id()

    def handle_activation(self, app: AppIdentity):
        """React to app becoming the foreground application."""
        state = self.session.state
        if state not in (ON_TARGET, DISTRACTED):
            return
        if self._is_own_app(app):
            return

        target = self.session.target_app
        if app == target:
            if state == DISTRACTED:
                self._stop_covering()
                self._set_state(ON_TARGET, target_app=target)
            return

        if state == DISTRACTED and app == self.session.distracting_app:
            return

        logger.info(f"Distracted by {app.name} (pid {app.process_id})")
        self._stop_covering()
        self._set_state(DISTRACTED, target_app=target, distracting_app=app)
        self._cover(app.process_id)

    # ------------------------------------------------------------------
    # Covering
    # ------------------------------------------------------------------

    def _activate(self, app: AppIdentity):
        try:
            if not self.workspace.activate(app):
                logger.debug(f"Could not activate {app.name}")
        except Exception as e:
            logger.debug(f"Activation of {app.name} failed: {e}")

    def _can_track_windows(self) -> bool:
        if self.permissions is None:
            return True
        return self.permissions.can_enumerate_windows()

    def _snapshot(self, pid: int) -> List[TrackedWindow]:
        try:
            return list(self.windows.list_windows(pid))
        except Exception as e:
            logger.debug(f"Window snapshot for pid {pid} failed: {e}")
            return []

    def _cover(self, pid: int):
        if not self._can_track_windows():
            self._cover_fullscreen()
            return

        windows = self._snapshot(pid)
        if not windows:
            logger.debug(f"No windows for pid {pid}, covering full-screen")
            self._cover_fullscreen()
            return

        for window in windows:
            self._add_window_overlay(window)
        self._start_polling()

    def _cover_fullscreen(self):
        frames = self.windows.screen_frames()
        if not frames:
            logger.warning("No screens reported, nothing to cover")
        for frame in frames:
            self._fullscreen_overlays.append(
                self.overlays.create(frame, self.return_to_target)
            )

    def _add_window_overlay(self, window: TrackedWindow):
        self._window_overlays[window.window_id] = self.overlays.create(
            window.frame, self.return_to_target
        )

    def _stop_covering(self):
        """Cancel the poll and destroy every overlay."""
        self._stop_polling()
        for overlay in self._window_overlays.values():
            self.overlays.destroy(overlay)
        self._window_overlays.clear()
        for overlay in self._fullscreen_overlays:
            self.overlays.destroy(overlay)
        self._fullscreen_overlays.clear()

    # ------------------------------------------------------------------
    # Reconciliation poll
    # ------------------------------------------------------------------

    def _start_polling(self):
        self._stop_polling()
        generation = self._poll_generation

        def tick():
            self._reconcile(generation)

        self._poll_task = self.scheduler.call_repeating(self.poll_interval, tick)

    def _stop_polling(self):
        self._poll_generation += 1
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    def _reconcile(self, generation: int):
        """Align window overlays with the distracting app's current windows."""
        if generation != self._poll_generation:
            return
        app = self.session.distracting_app
        if self.session.state != DISTRACTED or app is None:
            self._stop_polling()
            return

        fresh = {w.window_id: w for w in self._snapshot(app.process_id)}
        if generation != self._poll_generation:
            return

        for window_id in set(self._window_overlays) - set(fresh):
            self.overlays.destroy(self._window_overlays.pop(window_id))

        for window_id, window in fresh.items():
            overlay = self._window_overlays.get(window_id)
            if overlay is None:
                self._add_window_overlay(window)
            elif overlay.frame != window.frame:
                self.overlays.update_frame(overlay, window.frame)

        if not self._window_overlays and not self._fullscreen_overlays:
            logger.debug(f"{app.name} has no windows left, covering full-screen")
            self._stop_polling()
            self._cover_fullscreen()


def _name(app: Optional[AppIdentity]) -> Optional[str]:
    return app.name if app else None
