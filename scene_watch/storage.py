"""Alert frame persistence: timestamp-derived JPEG names and retention."""

import logging
import os
import time
from typing import List, Optional

import cv2
import numpy as np

from .config import Config

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when a frame could not be written to disk."""


def capture_filename(when: Optional[float] = None, ext: str = ".jpg") -> str:
    """Build the file name for a frame captured at `when` (epoch seconds).

    Uses the C ``asctime`` layout in local time, e.g. ``Mon Oct  5 04:31:00 2026``,
    with spaces and colons replaced by underscores and a trailing ``y`` in
    place of asctime's newline: ``Mon_Oct__5_04_31_00_2026y.jpg``.
    """
    stamp = time.asctime(time.localtime(when))
    stamp = stamp.replace(" ", "_").replace(":", "_")
    return stamp + "y" + ext


class FrameStore:
    """Writes alert frames into a directory and optionally prunes old ones."""

    def __init__(
        self,
        directory: Optional[str] = None,
        jpeg_quality: Optional[int] = None,
        max_images: Optional[int] = None,
    ) -> None:
        self.directory = directory or Config.SAVE_DIR
        self.jpeg_quality = int(Config.JPEG_QUALITY if jpeg_quality is None else jpeg_quality)
        self.max_images = int(Config.MAX_SAVED_IMAGES if max_images is None else max_images)

    def path_for(self, when: Optional[float] = None) -> str:
        """Absolute path a frame captured at `when` is stored under."""
        return os.path.join(self.directory, capture_filename(when))

    def save(self, frame: np.ndarray, path: str) -> str:
        """Encode `frame` as JPEG at `path`.

        Raises:
          StorageError: if the directory cannot be created or OpenCV refuses the write.
        """
        try:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        except OSError as e:
            raise StorageError(f"cannot create {os.path.dirname(path)}: {e}") from e
        try:
            ok = cv2.imwrite(path, frame, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality])
        except cv2.error as e:
            raise StorageError(f"cv2.imwrite failed for {path}: {e}") from e
        if not ok:
            raise StorageError(f"cv2.imwrite failed for {path}")
        logger.info("Saved alert frame to %s", path)
        if self.max_images > 0:
            self.enforce_retention()
        return path

    def list_images(self) -> List[str]:
        """Saved JPEGs, newest first (absolute paths)."""
        try:
            files = [
                os.path.join(self.directory, f)
                for f in os.listdir(self.directory)
                if f.lower().endswith(".jpg")
            ]
        except FileNotFoundError:
            return []
        files.sort(key=lambda p: os.path.getmtime(p), reverse=True)
        return files

    def enforce_retention(self) -> None:
        """Keep only the newest `max_images` JPEGs by deleting the oldest."""
        files = self.list_images()
        for p in files[self.max_images:]:
            try:
                os.remove(p)
                logger.debug("Retention removed %s", p)
            except OSError as e:
                logger.warning("Retention could not remove %s: %s", p, e)
