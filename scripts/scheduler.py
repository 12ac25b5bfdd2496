"""
Kaka scheduler - NSTimer-backed repeating and one-shot tasks.

Every task handle has an explicit cancel(); the engine relies on that to
guarantee no reconciliation timer outlives the distraction it belongs to.
"""

import logging

import objc
from Foundation import NSObject, NSTimer

logger = logging.getLogger(__name__)

TIMER_METHOD = 'scheduledTimerWithTimeInterval_target_selector_userInfo_repeats_'


class TimerTarget(NSObject):
    """NSTimer target that forwards fires to a Python callable."""

    def init(self):
        self = objc.super(TimerTarget, self).init()
        if self is None:
            return None
        self.callback = None
        self.repeats = False
        self.task = None
        return self

    def fire_(self, timer):
        if not self.repeats and self.task is not None:
            self.task.finished()
        if self.callback is None:
            return
        try:
            self.callback()
        except Exception:
            logger.exception("Scheduled callback failed")


class ScheduledTask:
    """Handle for one scheduled NSTimer."""

    def __init__(self, timer, target):
        self._timer = timer
        self._target = target

    @property
    def active(self) -> bool:
        return self._timer is not None

    def finished(self):
        """Drop references once a one-shot timer has fired."""
        self._timer = None
        self._target = None

    def cancel(self):
        if self._timer is not None:
            self._timer.invalidate()
        if self._target is not None:
            self._target.callback = None
        self.finished()


class RunLoopScheduler:
    """Schedules callbacks on the main run loop."""

    def _schedule(self, interval, callback, repeats) -> ScheduledTask:
        target = TimerTarget.alloc().init()
        target.callback = callback
        target.repeats = repeats
        timer = getattr(NSTimer, TIMER_METHOD)(
            interval, target, 'fire:', None, repeats
        )
        task = ScheduledTask(timer, target)
        target.task = task
        return task

    def call_repeating(self, interval: float, callback) -> ScheduledTask:
        return self._schedule(interval, callback, True)

    def call_later(self, delay: float, callback) -> ScheduledTask:
        return self._schedule(delay, callback, False)
