"""Global configuration for the scene watch sensor.

This module exposes configuration constants via the `Config` class. All values
are read from environment variables (prefix ``SW_``) with Raspberry Pi
defaults.
"""

import os  # Standard library for environment and filesystem helpers
import re  # Robust parsing of numeric envs with comments/ranges
from typing import Tuple


def _env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable robustly.

    Accepts values like "150", "150 # comment" and returns the first integer
    found. Falls back to default if parsing fails.
    """
    val = os.getenv(name)
    if val is None:
        return default
    s = str(val).strip().strip('"').strip("'")
    m = re.search(r"-?\d+", s)
    if not m:
        return default
    return int(m.group(0))


def _env_float(name: str, default: float) -> float:
    """Parse a float the same forgiving way as `_env_int`."""
    val = os.getenv(name)
    if val is None:
        return default
    s = str(val).strip().strip('"').strip("'")
    try:
        return float(s)
    except ValueError:
        pass
    # Commented forms such as "0.65 # strict"
    m = re.search(r"-?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?", s)
    if not m:
        return default
    return float(m.group(0))


def _env_range(name: str, default: Tuple[int, int]) -> Tuple[int, int]:
    """Parse a "lo-hi" pair such as "0-180" into a tuple of ints."""
    val = os.getenv(name)
    if val is None:
        return default
    nums = re.findall(r"\d+", str(val))
    if len(nums) < 2 or int(nums[0]) >= int(nums[1]):
        return default
    return int(nums[0]), int(nums[1])


def _env_path(name: str, default: str) -> str:
    """Normalize a directory: strip quotes/whitespace, expand ~ and $VARS, make absolute."""
    raw = str(os.getenv(name, default)).strip().strip('"').strip("'")
    raw = os.path.expanduser(os.path.expandvars(raw))
    return raw if os.path.isabs(raw) else os.path.abspath(raw)


class Config:
    """Application configuration sourced from environment variables.

    Other modules import settings as constants
    (``from scene_watch.config import Config``). To override a setting,
    define the corresponding environment variable before launching.
    """
    # Camera
    FRAME_WIDTH = _env_int("SW_FRAME_WIDTH", 320)  # Capture width in pixels
    FRAME_HEIGHT = _env_int("SW_FRAME_HEIGHT", 240)  # Capture height in pixels
    CAPTURE_FPS = _env_int("SW_CAPTURE_FPS", 5)  # Requested device FPS
    CAMERA_BACKEND = os.getenv("SW_CAMERA_BACKEND", "auto").strip().lower()  # auto|picamera2|v4l2
    CAMERA_INDEX = _env_int("SW_CAMERA_INDEX", 0)  # V4L2 device index (/dev/videoN)

    # Loop cadence
    CAPTURE_INTERVAL_SEC = _env_float("SW_CAPTURE_INTERVAL_SEC", 1.0)  # Sleep between cycles
    CAPTURE_RETRY_SEC = _env_float("SW_CAPTURE_RETRY_SEC", 10.0)  # Backoff when no frame is available

    # Detection
    SMOOTHING_WINDOW = _env_int("SW_SMOOTHING_WINDOW", 3)  # Scores averaged before deciding
    ALERT_THRESHOLD = _env_float("SW_ALERT_THRESHOLD", 0.7)  # Alert when smoothed correlation drops below
    HIST_H_BINS = _env_int("SW_HIST_H_BINS", 50)
    HIST_S_BINS = _env_int("SW_HIST_S_BINS", 60)
    # OpenCV 8-bit HSV: hue spans 0..179, saturation 0..255 (upper bound exclusive)
    HIST_H_RANGE = _env_range("SW_HIST_H_RANGE", (0, 180))
    HIST_S_RANGE = _env_range("SW_HIST_S_RANGE", (0, 256))
    # Minimum seconds between dispatched alerts; 0 re-triggers on every cycle below threshold
    ALERT_COOLDOWN_SEC = _env_float("SW_ALERT_COOLDOWN_SEC", 0.0)

    # Saving
    SAVE_DIR = _env_path("SW_SAVE_DIR", os.path.join("data", "captures"))
    JPEG_QUALITY = _env_int("SW_JPEG_QUALITY", 95)
    MAX_SAVED_IMAGES = _env_int("SW_MAX_SAVED_IMAGES", 0)  # Retention limit; 0 keeps everything

    # Mail notification (disabled unless MAIL_TO is set)
    MAIL_TO = os.getenv("SW_MAIL_TO", "").strip()
    MAIL_FROM = os.getenv("SW_MAIL_FROM", "camera@pi").strip()
    MAIL_SUBJECT = os.getenv("SW_MAIL_SUBJECT", "Camera notification")
    MAIL_BODY = os.getenv("SW_MAIL_BODY", "The camera have detected something strange.\n")
    SENDMAIL_PATH = os.getenv("SW_SENDMAIL_PATH", "/usr/sbin/sendmail")
    MAIL_TIMEOUT_SEC = _env_float("SW_MAIL_TIMEOUT_SEC", 30.0)

    # MEGA upload via MEGAcmd (disabled unless both credentials are set)
    MEGA_EMAIL = os.getenv("SW_MEGA_EMAIL", "").strip()
    MEGA_PASSWORD = os.getenv("SW_MEGA_PASSWORD", "")
    MEGA_REMOTE_DIR = os.getenv("SW_MEGA_REMOTE_DIR", "/")
    MEGA_CMD_DIR = os.getenv("SW_MEGA_CMD_DIR", "").strip()  # Where mega-* tools live; empty uses PATH
    UPLOAD_TIMEOUT_SEC = _env_float("SW_UPLOAD_TIMEOUT_SEC", 120.0)

    # Dashboard
    WEB_ENABLE = os.getenv("SW_WEB_ENABLE", "1") == "1"
    GALLERY_LATEST_COUNT = _env_int("SW_GALLERY_LATEST_COUNT", 18)  # Recent images shown on dashboard
    HOST = os.getenv("SW_HOST", "0.0.0.0")  # Flask bind host
    PORT = _env_int("SW_PORT", 8000)  # Flask bind port
    DEBUG = os.getenv("SW_DEBUG", "0") == "1"  # Flask debug switch

    # Logging
    LOG_LEVEL = os.getenv("SW_LOG_LEVEL", "INFO").strip().upper()
