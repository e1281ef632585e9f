"""
QR Decoder Module - GateCheck Event Check-in System

Camera adapter that turns a video stream into a lazy sequence of decoded
QR payloads, one per successfully decoded frame. Frames are read with
cv2.VideoCapture and decoded with cv2.QRCodeDetector after cropping a
centred decode region.

start() may run at most once at a time; stop() is a no-op when the camera
is already stopped.
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, Dict, Optional, Tuple

import cv2
import numpy as np

from config import Config
from gatecheck.modules.exceptions import CameraUnavailable


class QRDecoder:
    """Interface for decoders consumed by the scanner session."""

    async def start(self, camera_facing: str, frame_rate: int,
                    decode_region: Optional[Tuple[int, int]]) -> AsyncIterator[str]:
        raise NotImplementedError

    async def stop(self) -> None:
        raise NotImplementedError


def crop_center(frame: np.ndarray, region: Optional[Tuple[int, int]]) -> np.ndarray:
    """Return the centred (width, height) box of a frame, clipped to the frame size."""
    if not region:
        return frame
    height, width = frame.shape[:2]
    box_width = min(int(region[0]), width)
    box_height = min(int(region[1]), height)
    left = (width - box_width) // 2
    top = (height - box_height) // 2
    return np.ascontiguousarray(frame[top:top + box_height, left:left + box_width])


class CameraDecoder(QRDecoder):
    """
    OpenCV webcam decoder.

    Args:
        camera_indexes: Maps a camera facing ('environment', 'user') to a device index
        capture_factory: Callable opening a capture for a device index
        detector: Object with detectAndDecode(frame) -> (text, points, straight)
    """

    def __init__(self, camera_indexes: Optional[Dict[str, int]] = None,
                 capture_factory: Optional[Callable[[int], object]] = None,
                 detector=None):
        self.camera_indexes = camera_indexes or dict(Config.SCANNER_CAMERA_INDEXES)
        self.capture_factory = capture_factory or cv2.VideoCapture
        self.detector = detector or cv2.QRCodeDetector()
        self.logger = logging.getLogger(__name__)
        self._capture = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self, camera_facing: str = 'environment', frame_rate: int = 10,
                    decode_region: Optional[Tuple[int, int]] = (250, 250)) -> AsyncIterator[str]:
        """
        Open the camera and return the stream of decoded strings.

        Raises:
            CameraUnavailable: the camera is already running or cannot be opened
        """
        if self._running:
            raise CameraUnavailable("Camera decoder is already running")

        index = self.camera_indexes.get(camera_facing, 0)
        loop = asyncio.get_running_loop()
        try:
            capture = await loop.run_in_executor(None, self.capture_factory, index)
        except Exception as e:
            raise CameraUnavailable(f"Failed to open camera {index}: {str(e)}") from e

        if capture is None or not capture.isOpened():
            if capture is not None:
                capture.release()
            raise CameraUnavailable(f"Failed to start camera {index} ({camera_facing})")

        self._capture = capture
        self._running = True
        self.logger.info(f"Camera {index} started ({camera_facing}, {frame_rate} fps)")
        return self._frames(capture, frame_rate, decode_region)

    async def _frames(self, capture, frame_rate: int,
                      decode_region: Optional[Tuple[int, int]]) -> AsyncIterator[str]:
        loop = asyncio.get_running_loop()
        interval = 1.0 / frame_rate if frame_rate and frame_rate > 0 else 0

        while self._running and self._capture is capture:
            ok, frame = await loop.run_in_executor(None, capture.read)
            if not self._running:
                break
            if ok and frame is not None:
                text = self.decode_frame(frame, decode_region)
                if text:
                    yield text
            await asyncio.sleep(interval)

    def decode_frame(self, frame: np.ndarray,
                     decode_region: Optional[Tuple[int, int]] = None) -> Optional[str]:
        """Decode one frame; returns None when no QR code is readable."""
        try:
            text, _points, _straight = self.detector.detectAndDecode(
                crop_center(frame, decode_region)
            )
        except cv2.error as e:
            self.logger.debug(f"Frame decode failed: {str(e)}")
            return None
        return text or None

    async def stop(self) -> None:
        """Release the camera. Safe to call when already stopped."""
        if not self._running and self._capture is None:
            return
        self._running = False
        capture, self._capture = self._capture, None
        if capture is not None:
            capture.release()
        self.logger.info("Camera stopped")
