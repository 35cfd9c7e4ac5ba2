"""
Video frames for eventdj.

Frames are numpy BGR images. Vendors receive them as base64 JPEG.
"""

import base64
import logging
import threading
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)

JPEG_QUALITY = 80


def encode_jpeg_base64(frame: np.ndarray, quality: int = JPEG_QUALITY) -> str:
    """
    JPEG-encode a frame and return it as base64 text.

    Raises:
        ValueError: If OpenCV cannot encode the frame
    """
    ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise ValueError(f"could not JPEG-encode frame of shape {getattr(frame, 'shape', None)}")
    return base64.b64encode(buffer.tobytes()).decode("ascii")


class CameraFrameProvider:
    """
    Latest-frame reader over an OpenCV VideoCapture.

    Callable: returns a copy of the current frame, or None if the camera
    has not produced one. Mood sampling and face watch read it from
    different threads.
    """

    def __init__(self, source=0, width: Optional[int] = None, height: Optional[int] = None):
        """
        Open the capture device.

        Args:
            source: Camera index or stream URL
            width: Requested frame width
            height: Requested frame height
        """
        self._source = source
        self._lock = threading.Lock()
        self._capture = cv2.VideoCapture(source)
        if width:
            self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        if height:
            self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        if not self._capture.isOpened():
            logger.warning(f"[CAMERA] Could not open video source {source!r}")

    def __call__(self) -> Optional[np.ndarray]:
        with self._lock:
            if self._capture is None or not self._capture.isOpened():
                return None
            ok, frame = self._capture.read()
        if not ok or frame is None:
            logger.debug("[CAMERA] No frame available")
            return None
        return frame

    def release(self) -> None:
        with self._lock:
            if self._capture is not None:
                self._capture.release()
                self._capture = None
        logger.info(f"[CAMERA] Released video source {self._source!r}")
