"""
Kaka permissions - capability checks for window geometry access.

Reading other apps' window bounds needs the Screen Recording permission on
macOS 10.15+. Without it the engine still works, it just covers whole screens.
Can be run standalone to print a permission report.
"""

import logging
import platform
import sys

logger = logging.getLogger(__name__)

SCREEN_RECORDING_SETTINGS_URL = (
    'x-apple.systempreferences:com.apple.preference.security'
    '?Privacy_ScreenCapture'
)


class Colors:
    """ANSI colors for terminal output."""

    GREEN = '\033[92m'
    RED = '\033[91m'
    YELLOW = '\033[93m'
    BOLD = '\033[1m'
    END = '\033[0m'


def colored(text, color):
    """Apply color to text if terminal supports it."""
    if sys.stdout.isatty():
        return f"{color}{text}{Colors.END}"
    return text


def print_status(name, ok, detail=""):
    """Print a status line."""
    if ok:
        status = colored("✓", Colors.GREEN)
    else:
        status = colored("✗", Colors.RED)

    line = f"  {status} {name}"
    if detail:
        line += f" ({detail})"
    print(line)


def is_macos() -> bool:
    return platform.system().lower() == 'darwin'


def check_screen_capture() -> bool:
    """True when window bounds of other apps are readable."""
    try:
        import Quartz
    except ImportError:
        logger.debug("Quartz not available, cannot read window geometry")
        return False

    preflight = getattr(Quartz, 'CGPreflightScreenCaptureAccess', None)
    if preflight is None:
        # Before macOS 10.15 window bounds need no permission
        return True
    try:
        return bool(preflight())
    except Exception as e:
        logger.debug(f"Screen capture preflight failed: {e}")
        return False


def check_accessibility() -> bool:
    """True when this process is a trusted accessibility client."""
    try:
        from ApplicationServices import AXIsProcessTrusted
        return bool(AXIsProcessTrusted())
    except Exception as e:
        logger.debug(f"Accessibility check failed: {e}")
        return False


def request_screen_capture() -> bool:
    """Ask macOS to show its own Screen Recording prompt."""
    try:
        import Quartz
        return bool(Quartz.CGRequestScreenCaptureAccess())
    except Exception as e:
        logger.debug(f"Screen capture request failed: {e}")
        return False


def open_screen_recording_settings():
    """Open System Settings at Privacy & Security > Screen Recording."""
    try:
        from AppKit import NSURL, NSWorkspace
        url = NSURL.URLWithString_(SCREEN_RECORDING_SETTINGS_URL)
        NSWorkspace.sharedWorkspace().openURL_(url)
    except Exception as e:
        logger.error(f"Failed to open System Settings: {e}")


class PermissionProbe:
    """Answers "can we enumerate window geometry?", re-checked on every call.

    on_denied fires the first time the answer is False and never again for
    the life of the probe, so the user hears about it exactly once.
    """

    def __init__(self, check=check_screen_capture, on_denied=None):
        self._check = check
        self._on_denied = on_denied
        self.denial_reported = False

    def can_enumerate_windows(self) -> bool:
        try:
            granted = bool(self._check())
        except Exception as e:
            logger.debug(f"Permission check failed: {e}")
            granted = False
        if not granted:
            self._report_denied()
        return granted

    def _report_denied(self):
        if self.denial_reported:
            return
        self.denial_reported = True
        logger.info("Screen Recording permission missing, "
                    "distractions will be covered full-screen")
        if self._on_denied is None:
            return
        try:
            self._on_denied()
        except Exception:
            logger.exception("Permission prompt failed")


def check_all():
    """
    Run all checks and return results.

    Returns:
        tuple: (all_ok, results_dict)
    """
    results = {}
    if not is_macos():
        results['platform'] = (False, platform.system() or 'unknown')
        return False, results

    results['platform'] = (True, f"macOS {platform.mac_ver()[0]}")

    ok = check_screen_capture()
    results['screen_recording'] = (
        ok, "granted" if ok else "missing - full-screen covering only"
    )

    ok = check_accessibility()
    results['accessibility'] = (ok, "granted" if ok else "not granted")

    all_ok = results['screen_recording'][0]
    return all_ok, results


def print_results(results):
    """Print check results."""
    print()
    print(colored("  Permissions:", Colors.BOLD))
    print()
    print_status("Platform", *results['platform'])
    if 'screen_recording' in results:
        print_status("Screen Recording", *results['screen_recording'])
        print_status("Accessibility", *results['accessibility'])
    print()


def main(quiet=False) -> bool:
    """
    Print the permission report.

    Args:
        quiet: Don't print anything if all checks pass

    Returns:
        bool: True if window geometry can be read
    """
    all_ok, results = check_all()
    if all_ok and quiet:
        return True

    print_results(results)
    if not all_ok and 'screen_recording' in results:
        hint = colored('System Settings > Privacy & Security > Screen Recording',
                       Colors.YELLOW)
        print(f"  Grant access in {hint} to cover single windows.")
        print()
    return all_ok


if __name__ == '__main__':
    sys.exit(0 if main() else 1)
