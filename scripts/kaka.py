#!/usr/bin/env python3
"""
Kaka - keep one app in focus, cover every other app you switch to.

    kaka.py --list        list running applications
    kaka.py --check       print the permission report
    kaka.py TARGET        focus on TARGET (pid, bundle id or app name)
"""

import argparse
import atexit
import logging
import os
import signal
import sys

from settings import is_debug_enabled, load_settings

# Debug logging (set KAKA_DEBUG=1 or pass --debug to enable)
_debug = is_debug_enabled()
logging.basicConfig(
    level=logging.DEBUG if _debug else logging.WARNING,
    format='[kaka] %(levelname)s: %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger('kaka')

try:
    from AppKit import NSAlert, NSApplication
    from PyObjCTools import AppHelper
except ImportError:
    print("Required: pip3 install pyobjc-framework-Cocoa pyobjc-framework-Quartz")
    sys.exit(1)

import permissions
from focus_engine import FocusSessionEngine
from overlay import CoverOverlayFactory
from scheduler import RunLoopScheduler
from window_tracker import QuartzWindowRegistry
from workspace import CocoaWorkspace, ForegroundActivationSource

# NSApplicationActivationPolicyAccessory: no Dock icon, may show windows
NSApplicationActivationPolicyAccessory = 1
NSAlertFirstButtonReturn = 1000
PERMISSION_PROMPT_DELAY = 1.0


def show_permission_alert():
    """One-time explanation of the Screen Recording permission."""
    alert = NSAlert.alloc().init()
    alert.setMessageText_("Screen Recording Permission Required")
    alert.setInformativeText_(
        "Kaka needs Screen Recording permission to see where other apps' "
        "windows are, so it can cover only the distracting window.\n\n"
        "Without it, Kaka covers your entire screen when you get distracted."
    )
    alert.addButtonWithTitle_("Open System Settings")
    alert.addButtonWithTitle_("Later")
    NSApplication.sharedApplication().activateIgnoringOtherApps_(True)
    if alert.runModal() == NSAlertFirstButtonReturn:
        permissions.open_screen_recording_settings()


def log_session(snapshot):
    if snapshot.is_distracted:
        print(f"Distracted by {snapshot.distracting_app.name}")
    elif snapshot.is_active:
        print(f"Focused on {snapshot.target_app.name}")


def build_engine(settings: dict, scheduler) -> FocusSessionEngine:
    """Wire the engine to its Cocoa collaborators."""
    on_denied = None
    if settings['permissions']['promptOnDenied']:
        def on_denied():
            scheduler.call_later(PERMISSION_PROMPT_DELAY, show_permission_alert)

    return FocusSessionEngine(
        workspace=CocoaWorkspace(),
        windows=QuartzWindowRegistry(settings['minWindowSize']),
        overlays=CoverOverlayFactory(settings['overlay']),
        scheduler=scheduler,
        permissions=permissions.PermissionProbe(on_denied=on_denied),
        poll_interval=settings['pollInterval'],
    )


def list_applications() -> int:
    for app in CocoaWorkspace().running_applications():
        bundle = app.bundle_identifier or '-'
        print(f"{app.process_id:>7}  {app.name}  ({bundle})")
    return 0


def run_session(target_query: str, settings: dict) -> int:
    """Run a focus session until interrupted."""
    app = NSApplication.sharedApplication()
    app.setActivationPolicy_(NSApplicationActivationPolicyAccessory)

    scheduler = RunLoopScheduler()
    engine = build_engine(settings, scheduler)

    target = CocoaWorkspace().find_application(target_query)
    if target is None:
        print(f"No running application matches '{target_query}'. "
              f"Try --list.", file=sys.stderr)
        return 1

    # Surface a missing permission at launch rather than at first distraction
    engine.permissions.can_enumerate_windows()

    source = ForegroundActivationSource()
    engine.add_listener(log_session)
    engine.select_target(target)
    if not engine.start_session():
        print(f"Could not start a session on {target.name}.", file=sys.stderr)
        return 1
    source.start(engine.handle_activation)

    def cleanup():
        source.stop()
        engine.shutdown()

    def handle_signal(signum, frame):
        cleanup()
        os._exit(0)

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGHUP, handle_signal)
    atexit.register(cleanup)

    try:
        AppHelper.runEventLoop(installInterrupt=True)
    finally:
        cleanup()
    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Cover distracting apps until you return to your focus app'
    )
    parser.add_argument(
        'target', nargs='?',
        help='App to focus on: pid, bundle identifier or name'
    )
    parser.add_argument(
        '--list', '-l',
        action='store_true',
        help='List running applications and exit'
    )
    parser.add_argument(
        '--check', '-c',
        action='store_true',
        help='Check permissions, exit with code 1 if window access is missing'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    return parser, parser.parse_args(argv)


def main(argv=None) -> int:
    parser, args = parse_args(argv)
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.list:
        return list_applications()
    if args.check:
        return 0 if permissions.main() else 1
    if not args.target:
        parser.print_usage(sys.stderr)
        return 2

    return run_session(args.target, load_settings())


if __name__ == '__main__':
    sys.exit(main())
