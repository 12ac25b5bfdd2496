"""
Kaka overlay - opaque cover windows placed over distracting windows.

Each cover is a borderless NSWindow above everything else on every Space,
filled with a tiled scatter pattern (rendered once with Pillow) and carrying
a "Back to Focus" button. Covers never decide anything themselves: the
button only forwards to the callback supplied by whoever created them.
"""

import io
import logging
import random

import objc
from AppKit import (
    NSBackingStoreBuffered,
    NSButton,
    NSColor,
    NSFloatingWindowLevel,
    NSFont,
    NSImage,
    NSMakeRect,
    NSScreenSaverWindowLevel,
    NSTextField,
    NSView,
    NSWindow,
    NSWindowCollectionBehaviorCanJoinAllSpaces,
    NSWindowCollectionBehaviorFullScreenAuxiliary,
    NSWindowCollectionBehaviorStationary,
)
from Foundation import NSData, NSObject
from PIL import Image, ImageDraw

from models import Rect
from settings import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

NS_BORDERLESS_WINDOW_MASK = 0

# NSAutoresizingMaskOptions
NS_VIEW_WIDTH_SIZABLE = 2
NS_VIEW_HEIGHT_SIZABLE = 16
NS_VIEW_FLEXIBLE_MARGINS = 1 | 4 | 8 | 32

# Scatter pattern
PATTERN_CELLS = 6
BLOB_JITTER = 20
BLOB_MIN_SIZE = 30
BLOB_MAX_SIZE = 60
BLOB_COLORS = [(101, 67, 33, 255), (122, 82, 45, 255), (84, 55, 28, 255)]

# Centered message block
MESSAGE_WIDTH = 640
MESSAGE_HEIGHT = 220

WINDOW_LEVELS = {
    'screensaver': NSScreenSaverWindowLevel,
    'floating': NSFloatingWindowLevel,
}


def _rgba_255(color) -> tuple:
    r, g, b, a = color
    return (int(r * 255), int(g * 255), int(b * 255), int(a * 255))


def _draw_blob(draw: ImageDraw.ImageDraw, cx: float, cy: float, size: float,
               fill: tuple):
    """Three stacked ellipses, widest at the bottom."""
    tiers = [(1.0, 0.0), (0.75, -0.28), (0.45, -0.5)]
    for scale, lift in tiers:
        w = size * scale
        h = size * scale * 0.55
        y = cy + lift * size
        draw.ellipse([cx - w / 2, y - h / 2, cx + w / 2, y + h / 2], fill=fill)


def render_scatter_tile(spacing: int = 80, background=(0.45, 0.3, 0.15, 0.97),
                        seed=None) -> Image.Image:
    """Render one seamless pattern tile.

    Blobs sit on a jittered grid of PATTERN_CELLS x PATTERN_CELLS cells and are
    drawn wrapped across the tile edges so the tile repeats without seams.
    """
    rng = random.Random(seed)
    tile = spacing * PATTERN_CELLS
    img = Image.new('RGBA', (tile, tile), _rgba_255(background))
    draw = ImageDraw.Draw(img)

    for row in range(PATTERN_CELLS):
        for col in range(PATTERN_CELLS):
            cx = col * spacing + spacing / 2 + rng.uniform(-BLOB_JITTER, BLOB_JITTER)
            cy = row * spacing + spacing / 2 + rng.uniform(-BLOB_JITTER, BLOB_JITTER)
            size = rng.uniform(BLOB_MIN_SIZE, BLOB_MAX_SIZE)
            fill = rng.choice(BLOB_COLORS)
            for dx in (-tile, 0, tile):
                for dy in (-tile, 0, tile):
                    _draw_blob(draw, cx + dx, cy + dy, size, fill)

    return img


def pil_to_nsimage(pil_image: Image.Image) -> NSImage:
    """Convert PIL Image to NSImage."""
    buffer = io.BytesIO()
    pil_image.save(buffer, format='PNG')
    png_data = buffer.getvalue()
    data = NSData.dataWithBytes_length_(png_data, len(png_data))
    return NSImage.alloc().initWithData_(data)


def ns_rect(rect: Rect):
    return NSMakeRect(rect.x, rect.y, rect.width, rect.height)


class ReturnActionTarget(NSObject):
    """Button target for the "Back to Focus" action."""

    def init(self):
        self = objc.super(ReturnActionTarget, self).init()
        if self is None:
            return None
        self.callback = None
        return self

    def returnToFocus_(self, sender):
        if self.callback is None:
            return
        try:
            self.callback()
        except Exception:
            logger.exception("Return-to-focus action failed")


class CoverOverlay:
    """One cover window. The engine keeps these as opaque handles."""

    def __init__(self, window, action_target, frame: Rect):
        self.window = window
        self.action_target = action_target
        self.frame = frame
        self.closed = False

    def show(self):
        self.window.orderFrontRegardless()

    def set_frame(self, rect: Rect):
        # Single call: subviews follow through their autoresizing masks
        self.window.setFrame_display_(ns_rect(rect), True)
        self.frame = rect

    def close(self):
        if self.closed:
            return
        self.closed = True
        self.action_target.callback = None
        self.window.orderOut_(None)
        self.window.close()


class CoverOverlayFactory:
    """Creates, moves and destroys cover windows."""

    def __init__(self, overlay_settings: dict = None):
        cfg = dict(DEFAULT_SETTINGS['overlay'])
        cfg.update(overlay_settings or {})
        self.headline = cfg['headline']
        self.subtitle = cfg['subtitle']
        self.button_title = cfg['buttonTitle']
        self.background = tuple(cfg['backgroundColor'])
        self.pattern_spacing = int(cfg['patternSpacing'])
        self.pattern_seed = cfg['patternSeed']
        self.window_level = WINDOW_LEVELS.get(
            cfg['windowLevel'], NSScreenSaverWindowLevel
        )
        self._pattern_color = None

    def pattern_color(self):
        """Pattern NSColor, rendered on first use and shared by all covers."""
        if self._pattern_color is None:
            try:
                tile = render_scatter_tile(
                    self.pattern_spacing, self.background, self.pattern_seed
                )
                self._pattern_color = NSColor.colorWithPatternImage_(
                    pil_to_nsimage(tile)
                )
            except Exception as e:
                logger.warning(f"Pattern render failed, using plain cover: {e}")
                self._pattern_color = NSColor.colorWithCalibratedRed_green_blue_alpha_(
                    *self.background
                )
        return self._pattern_color

    def _label(self, text, size, y):
        label = NSTextField.labelWithString_(text)
        label.setFont_(NSFont.boldSystemFontOfSize_(size))
        label.setTextColor_(NSColor.whiteColor())
        label.setAlignment_(1)  # NSTextAlignmentCenter
        label.setFrame_(NSMakeRect(0, y, MESSAGE_WIDTH, size * 1.4))
        return label

    def _build_content(self, rect: Rect, action_target):
        content = NSView.alloc().initWithFrame_(
            NSMakeRect(0, 0, rect.width, rect.height)
        )
        content.setAutoresizingMask_(NS_VIEW_WIDTH_SIZABLE | NS_VIEW_HEIGHT_SIZABLE)

        message = NSView.alloc().initWithFrame_(NSMakeRect(
            (rect.width - MESSAGE_WIDTH) / 2,
            (rect.height - MESSAGE_HEIGHT) / 2,
            MESSAGE_WIDTH, MESSAGE_HEIGHT,
        ))
        message.setAutoresizingMask_(NS_VIEW_FLEXIBLE_MARGINS)
        message.addSubview_(self._label(self.headline, 48, 140))
        message.addSubview_(self._label(self.subtitle, 24, 95))

        button = NSButton.buttonWithTitle_target_action_(
            self.button_title, action_target, 'returnToFocus:'
        )
        button.setFrame_(NSMakeRect((MESSAGE_WIDTH - 200) / 2, 20, 200, 48))
        message.addSubview_(button)

        content.addSubview_(message)
        return content

    def create(self, rect: Rect, on_return) -> CoverOverlay:
        """Create and show a cover over rect (canonical coordinates)."""
        window = NSWindow.alloc().initWithContentRect_styleMask_backing_defer_(
            ns_rect(rect), NS_BORDERLESS_WINDOW_MASK, NSBackingStoreBuffered, False
        )
        window.setReleasedWhenClosed_(False)
        window.setLevel_(self.window_level)
        window.setCollectionBehavior_(
            NSWindowCollectionBehaviorCanJoinAllSpaces
            | NSWindowCollectionBehaviorFullScreenAuxiliary
            | NSWindowCollectionBehaviorStationary
        )
        window.setOpaque_(False)
        window.setHasShadow_(False)
        window.setIgnoresMouseEvents_(False)
        window.setBackgroundColor_(self.pattern_color())

        action_target = ReturnActionTarget.alloc().init()
        action_target.callback = on_return
        window.setContentView_(self._build_content(rect, action_target))

        overlay = CoverOverlay(window, action_target, rect)
        overlay.show()
        return overlay

    def update_frame(self, overlay: CoverOverlay, rect: Rect):
        overlay.set_frame(rect)

    def destroy(self, overlay: CoverOverlay):
        overlay.close()
