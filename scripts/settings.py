"""
Kaka settings - settings-kaka.json merged over built-in defaults.
"""

import copy
import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

KAKA_ROOT = Path(os.environ.get(
    'KAKA_ROOT',
    Path(__file__).parent.parent
))

SETTINGS_FILENAME = 'settings-kaka.json'

# Reconciliation cadence and helper-window filter
DEFAULT_POLL_INTERVAL = 0.1
DEFAULT_MIN_WINDOW_SIZE = 50

DEFAULT_SETTINGS = {
    'pollInterval': DEFAULT_POLL_INTERVAL,
    'minWindowSize': DEFAULT_MIN_WINDOW_SIZE,
    'overlay': {
        'headline': 'GET BACK TO WORK!',
        'subtitle': 'You got distracted!',
        'buttonTitle': 'Back to Focus',
        'backgroundColor': [0.45, 0.3, 0.15, 0.97],
        'patternSpacing': 80,
        'patternSeed': None,
        'windowLevel': 'screensaver',
    },
    'permissions': {
        'promptOnDenied': True,
    },
}


def merge_settings(base: dict, override: dict) -> dict:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_settings(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(root: Path = None) -> dict:
    """Load settings from settings-kaka.json, merged over defaults."""
    settings_file = (root or KAKA_ROOT) / SETTINGS_FILENAME
    user_settings = {}
    if settings_file.exists():
        try:
            user_settings = json.loads(settings_file.read_text())
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable {settings_file}: {e}")
    if not isinstance(user_settings, dict):
        logger.warning(f"Ignoring {settings_file}: expected a JSON object")
        user_settings = {}
    return merge_settings(DEFAULT_SETTINGS, user_settings)


def is_debug_enabled() -> bool:
    return os.environ.get('KAKA_DEBUG', '0') == '1'
