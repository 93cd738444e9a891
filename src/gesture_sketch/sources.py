"""Camera frame source backed by OpenCV."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

try:
    import cv2
except ImportError:
    cv2 = None

from gesture_sketch.scheduler import Frame

logger = logging.getLogger("gesture_sketch.sources")


class VideoCaptureSource:
    """Reads frames from a local camera with cv2.VideoCapture.

    Frames are mirrored by default so drawing follows the hand the way a
    mirror would.
    """

    def __init__(
        self,
        camera_index: int = 0,
        width: Optional[int] = None,
        height: Optional[int] = None,
        flip_horizontal: bool = True,
        ready_poll: float = 0.05,
    ):
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self.flip_horizontal = flip_horizontal
        self.ready_poll = ready_poll
        self._capture = None

    async def open(self) -> bool:
        if cv2 is None:
            raise ImportError(
                "opencv-python is required for camera capture. Install with: pip install opencv-python"
            )

        self.release()
        capture = cv2.VideoCapture(self.camera_index)
        if not capture.isOpened():
            logger.error("Could not open camera %d", self.camera_index)
            capture.release()
            return False

        if self.width:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        if self.height:
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._capture = capture
        logger.info("Camera %d opened", self.camera_index)
        return True

    async def wait_ready(self) -> None:
        """Poll until the camera delivers its first frame."""
        while True:
            capture = self._capture
            if capture is None:
                raise RuntimeError("camera released while waiting for first frame")
            ok, _ = await asyncio.to_thread(capture.read)
            if ok:
                return
            await asyncio.sleep(self.ready_poll)

    def read(self) -> Optional[Frame]:
        if self._capture is None:
            return None
        ok, image = self._capture.read()
        if not ok:
            return Frame(width=0, height=0, ended=True)
        if self.flip_horizontal:
            image = cv2.flip(image, 1)
        height, width = image.shape[:2]
        return Frame(width=width, height=height, image=image)

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Camera %d released", self.camera_index)
