"""
Kaka workspace - running applications and foreground activation events.
"""

import logging
import os
from typing import Callable, List, Optional

import objc
from AppKit import NSRunningApplication, NSWorkspace
from Foundation import NSBundle, NSObject

from models import AppIdentity

logger = logging.getLogger(__name__)

ACTIVATE_NOTIFICATION = 'NSWorkspaceDidActivateApplicationNotification'
APPLICATION_KEY = 'NSWorkspaceApplicationKey'

# NSApplicationActivationPolicyRegular / NSApplicationActivateIgnoringOtherApps
# (not always exported by PyObjC)
ACTIVATION_POLICY_REGULAR = 0
ACTIVATE_IGNORING_OTHER_APPS = 1 << 1


def identity_from_running_app(app) -> Optional[AppIdentity]:
    """Convert an NSRunningApplication, None if it has no usable name."""
    if app is None:
        return None
    name = app.localizedName()
    if not name:
        return None
    return AppIdentity(
        process_id=int(app.processIdentifier()),
        name=str(name),
        bundle_identifier=app.bundleIdentifier(),
        icon=app.icon(),
    )


class CocoaWorkspace:
    """Running-application queries and activation through NSWorkspace."""

    def running_applications(self) -> List[AppIdentity]:
        """Regular, named apps sorted case-insensitively by name."""
        apps = []
        for app in NSWorkspace.sharedWorkspace().runningApplications():
            if app.activationPolicy() != ACTIVATION_POLICY_REGULAR:
                continue
            identity = identity_from_running_app(app)
            if identity:
                apps.append(identity)
        return sorted(apps, key=lambda a: a.name.lower())

    def find_application(self, query: str) -> Optional[AppIdentity]:
        """Resolve a pid, bundle identifier or app name (case-insensitive)."""
        apps = self.running_applications()
        if query.isdigit():
            pid = int(query)
            return next((a for a in apps if a.process_id == pid), None)
        lowered = query.lower()
        for app in apps:
            if app.bundle_identifier and app.bundle_identifier.lower() == lowered:
                return app
        return next((a for a in apps if a.name.lower() == lowered), None)

    def activate(self, app: AppIdentity) -> bool:
        """Bring app to the foreground. False if the process is gone."""
        running = NSRunningApplication.runningApplicationWithProcessIdentifier_(
            app.process_id
        )
        if running is None or running.isTerminated():
            logger.debug(f"Cannot activate {app.name}: process {app.process_id} gone")
            return False
        return bool(running.activateWithOptions_(ACTIVATE_IGNORING_OTHER_APPS))

    def own_bundle_identifier(self) -> Optional[str]:
        return NSBundle.mainBundle().bundleIdentifier()

    def own_process_id(self) -> int:
        return os.getpid()


class ActivationObserver(NSObject):
    """Notification-center observer for app activation."""

    def init(self):
        self = objc.super(ActivationObserver, self).init()
        if self is None:
            return None
        self.callback = None
        return self

    def appDidActivate_(self, notification):
        """Called when any app becomes frontmost."""
        try:
            app = notification.userInfo()[APPLICATION_KEY]
            identity = identity_from_running_app(app)
        except Exception as e:
            logger.debug(f"Unreadable activation notification: {e}")
            return
        if identity is None or self.callback is None:
            return
        try:
            self.callback(identity)
        except Exception:
            logger.exception(f"Activation handler failed for {identity.name}")


class ForegroundActivationSource:
    """One NSWorkspace subscription, republished as a callback stream."""

    def __init__(self):
        self.observer = None

    @property
    def running(self) -> bool:
        return self.observer is not None

    def start(self, callback: Callable[[AppIdentity], None]):
        if self.observer is not None:
            return
        self.observer = ActivationObserver.alloc().init()
        self.observer.callback = callback
        nc = NSWorkspace.sharedWorkspace().notificationCenter()
        nc.addObserver_selector_name_object_(
            self.observer, 'appDidActivate:', ACTIVATE_NOTIFICATION, None
        )
        logger.debug("Subscribed to app activation notifications")

    def stop(self):
        if self.observer is None:
            return
        nc = NSWorkspace.sharedWorkspace().notificationCenter()
        nc.removeObserver_(self.observer)
        self.observer.callback = None
        self.observer = None
        logger.debug("Unsubscribed from app activation notifications")
