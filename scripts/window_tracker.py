"""
Kaka window tracker - on-screen window geometry via Quartz Window Services.

Quartz reports window bounds with a top-left origin on the primary display,
while NSWindow frames use a bottom-left origin. Everything returned from here
is already flipped into the Cocoa (canonical) space.
"""

import logging
from typing import List, Optional

from AppKit import NSScreen
from Quartz import (
    CGWindowListCopyWindowInfo,
    kCGNullWindowID,
    kCGWindowListExcludeDesktopElements,
    kCGWindowListOptionOnScreenOnly,
)

from models import Rect, TrackedWindow
from settings import DEFAULT_MIN_WINDOW_SIZE

logger = logging.getLogger(__name__)

# Layer 0 holds ordinary app windows; menus, the Dock and tooltips sit above
NORMAL_WINDOW_LAYER = 0


def convert_to_canonical(native: Rect, screen_height: Optional[float]) -> Rect:
    """Flip a Quartz (top-left origin) rect against the primary screen."""
    if screen_height is None:
        return native
    return Rect(
        native.x,
        screen_height - native.y - native.height,
        native.width,
        native.height,
    )


class QuartzWindowRegistry:
    """Window snapshot provider backed by CGWindowListCopyWindowInfo."""

    def __init__(self, min_window_size: float = DEFAULT_MIN_WINDOW_SIZE):
        self.min_window_size = min_window_size

    def _copy_window_list(self) -> list:
        opts = (kCGWindowListOptionOnScreenOnly |
                kCGWindowListExcludeDesktopElements)
        try:
            windows = CGWindowListCopyWindowInfo(opts, kCGNullWindowID)
        except Exception as e:
            logger.debug(f"Window list query failed: {e}")
            return []
        return list(windows or [])

    def primary_screen_height(self) -> Optional[float]:
        """Height of the screen holding the menu bar, None if unknown."""
        try:
            screens = NSScreen.screens()
            if not screens:
                return None
            return float(screens[0].frame().size.height)
        except Exception as e:
            logger.debug(f"Screen query failed: {e}")
            return None

    def screen_frames(self) -> List[Rect]:
        """Frames of every connected screen, primary first."""
        try:
            return [Rect.from_nsrect(s.frame()) for s in NSScreen.screens() or []]
        except Exception as e:
            logger.debug(f"Screen query failed: {e}")
            return []

    def _parse(self, info, screen_height) -> Optional[TrackedWindow]:
        """Turn one window dict into a TrackedWindow, None for noise."""
        try:
            if info.get('kCGWindowLayer', NORMAL_WINDOW_LAYER) != \
                    NORMAL_WINDOW_LAYER:
                return None
            native = Rect.from_bounds(info['kCGWindowBounds'])
            window_id = int(info['kCGWindowNumber'])
            owner_pid = int(info['kCGWindowOwnerPID'])
        except (KeyError, TypeError, ValueError):
            return None

        if native.width < self.min_window_size or \
                native.height < self.min_window_size:
            return None

        return TrackedWindow(
            window_id=window_id,
            frame=convert_to_canonical(native, screen_height),
            owner_pid=owner_pid,
            name=info.get('kCGWindowName') or None,
        )

    def list_windows(self, pid: int) -> List[TrackedWindow]:
        """Visible normal-layer windows of pid, front to back.

        An empty list means "no windows observed": the process has none, the
        registry refused the query, or screen recording access is missing.
        """
        screen_height = self.primary_screen_height()
        windows = []
        for info in self._copy_window_list():
            if info.get('kCGWindowOwnerPID') != pid:
                continue
            tracked = self._parse(info, screen_height)
            if tracked:
                windows.append(tracked)
        return windows

    def window_frame(self, window_id: int) -> Optional[Rect]:
        """Current canonical frame of window_id, None once it is gone."""
        for info in self._copy_window_list():
            if info.get('kCGWindowNumber') != window_id:
                continue
            try:
                native = Rect.from_bounds(info['kCGWindowBounds'])
            except (KeyError, TypeError, ValueError):
                return None
            return convert_to_canonical(native, self.primary_screen_height())
        return None

    def window_exists(self, window_id: int) -> bool:
        return any(
            info.get('kCGWindowNumber') == window_id
            for info in self._copy_window_list()
        )
