"""
Scanner Session Module - GateCheck Event Check-in System

Session controller that drives a decoder and hands every decoded code to
the check-in manager. Runs on one asyncio event loop; the blocking store
call is pushed to the default executor and awaited.

While an evaluation is outstanding further decoded frames are dropped, so
a camera that keeps decoding the same ticket submits it only once. The
most recent verdict is kept until the next start().
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, List, Optional, Tuple

from config import Config
from gatecheck.modules.checkin_manager import CheckInManager
from gatecheck.modules.exceptions import CameraUnavailable
from gatecheck.modules.models import REASON_STORE_ERROR, Invalid, ScanAttempt, Verdict
from gatecheck.modules.notification_system import NotificationSystem
from gatecheck.modules.qr_decoder import QRDecoder


class ScannerSession:
    """
    Camera start/stop and result display around the check-in manager.

    Args:
        checkin_manager (CheckInManager): Decision procedure for each scan
        decoder (QRDecoder): Source of decoded strings
        stop_on_result (bool): Stop the camera after each verdict
        on_verdict: Optional callback receiving each Verdict
    """

    def __init__(self, checkin_manager: CheckInManager, decoder: QRDecoder,
                 camera_facing: str = None, frame_rate: int = None,
                 decode_region: Optional[Tuple[int, int]] = None,
                 stop_on_result: bool = None,
                 on_verdict: Optional[Callable[[Verdict], None]] = None,
                 notification_system: Optional[NotificationSystem] = None):
        self.checkin_manager = checkin_manager
        self.decoder = decoder
        self.camera_facing = camera_facing or Config.SCANNER_CAMERA_FACING
        self.frame_rate = frame_rate or Config.SCANNER_FRAME_RATE
        self.decode_region = decode_region or Config.SCANNER_DECODE_REGION
        self.stop_on_result = Config.SCANNER_STOP_ON_RESULT if stop_on_result is None else stop_on_result
        self.on_verdict = on_verdict
        self.notifications = notification_system or checkin_manager.notifications
        self.logger = logging.getLogger(__name__)

        self.processing = False
        self.last_verdict: Optional[Verdict] = None
        self.ignored_frames = 0
        self._consumer: Optional[asyncio.Task] = None
        self._evaluations = set()
        self._waiters: List[asyncio.Future] = []

    @property
    def scanning(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    async def start(self) -> None:
        """
        Acquire the decoder and begin evaluating decoded codes.

        Raises:
            CameraUnavailable: the decoder failed to start
        """
        if self.scanning:
            self.logger.debug("Scanner already running")
            return

        self.last_verdict = None
        self.ignored_frames = 0
        try:
            stream = await self.decoder.start(self.camera_facing, self.frame_rate, self.decode_region)
        except CameraUnavailable as e:
            self.logger.error(f"Failed to start camera: {str(e)}")
            self.notifications.send_system_alert('Camera unavailable', str(e))
            raise

        self._consumer = asyncio.create_task(self._consume(stream))
        self.logger.info("Scanner session started")

    async def stop(self) -> None:
        """Release the decoder. An evaluation already submitted still completes."""
        consumer, self._consumer = self._consumer, None
        if consumer is not None and consumer is not asyncio.current_task() and not consumer.done():
            consumer.cancel()
            await asyncio.gather(consumer, return_exceptions=True)
        await self.decoder.stop()

    async def _consume(self, stream: AsyncIterator[str]) -> None:
        try:
            async for code in stream:
                if self.processing:
                    self.ignored_frames += 1
                    continue
                self.processing = True
                task = asyncio.create_task(self._evaluate(ScanAttempt(raw_code=code)))
                self._evaluations.add(task)
                task.add_done_callback(self._evaluations.discard)
        except Exception as e:
            self.logger.error(f"Decoder stream failed: {str(e)}")
            self.notifications.send_system_alert('Camera stopped', str(e))

    async def _evaluate(self, attempt: ScanAttempt) -> None:
        loop = asyncio.get_running_loop()
        try:
            try:
                verdict = await loop.run_in_executor(
                    None, self.checkin_manager.evaluate, attempt.raw_code
                )
            except Exception as e:
                self.logger.error(f"Evaluation failed for {attempt.raw_code}: {str(e)}")
                verdict = Invalid(reason=REASON_STORE_ERROR, code=attempt.raw_code)

            # Release the camera before waiters see the verdict so they can restart it
            if self.stop_on_result:
                await self.stop()
            self._record(verdict)
        finally:
            self.processing = False

    def _record(self, verdict: Verdict) -> None:
        self.last_verdict = verdict
        self.logger.info(f"Scan verdict: {verdict.status} - {verdict.message}")

        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(verdict)

        if self.on_verdict is not None:
            try:
                self.on_verdict(verdict)
            except Exception as e:
                self.logger.error(f"Verdict callback failed: {str(e)}")

    async def wait_for_verdict(self, timeout: Optional[float] = None) -> Verdict:
        """Wait for the next verdict produced by this session."""
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        return await asyncio.wait_for(waiter, timeout)

    async def drain(self) -> None:
        """Wait until every submitted evaluation has finished."""
        if self._evaluations:
            await asyncio.gather(*list(self._evaluations), return_exceptions=True)
