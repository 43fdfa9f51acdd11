"""Scene watch package.

A fixed-camera change sensor: compares each frame's hue/saturation histogram
against a baseline, smooths the scores, and on a sustained drop saves the
frame, sends a mail and uploads the image. Includes a small Flask dashboard.
"""

# Nothing to export at package import time; modules provide the functionality.
__all__ = []
