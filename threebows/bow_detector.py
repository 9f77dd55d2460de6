"""
Bow detector: turns a stream of nose positions into counted bows.

Calibrates the neutral nose-Y position over the first frames, then detects
a bow when the nose drops BOW_DROP below that baseline.

State machine: CALIBRATING → UPRIGHT → BOWING → RETURNING → UPRIGHT

Nose-Y is normalized to frame height (0.0 = top, 1.0 = bottom), so a
positive drop means the head moved down.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from threebows.capture import FrameSource, NoseEstimator

logger = logging.getLogger(__name__)

BOW_DROP = 0.09            # 9% of frame height below neutral triggers a bow
RETURN_DROP = 0.04         # must come back to within 4% of neutral
DEBOUNCE_SECONDS = 0.5     # minimum time between two bow triggers
CALIBRATION_FRAMES = 20    # ~0.7 s at 30 fps


class DetectorState(Enum):
    CALIBRATING = "CALIBRATING"
    UPRIGHT = "UPRIGHT"
    BOWING = "BOWING"
    RETURNING = "RETURNING"


def median(samples: list[float]) -> float:
    """Upper median; a single glitched frame cannot move it."""
    ordered = sorted(samples)
    return ordered[len(ordered) // 2]


@dataclass
class BowSession:
    """Mutable state of one detection run."""
    state: DetectorState = DetectorState.CALIBRATING
    baseline: Optional[float] = None
    samples: list[float] = field(default_factory=list)
    bow_count: int = 0
    last_trigger: Optional[float] = None

    def debounce_elapsed(self, now: float) -> bool:
        return self.last_trigger is None or now - self.last_trigger >= DEBOUNCE_SECONDS


class BowDetector:
    """
    Drives a BowSession from a frame source and a nose estimator.

    Notifications:
        on_bow(count)           a bow was counted (detected or manual)
        on_state_change(state)  the session moved to a new DetectorState
        on_calibrated()         the neutral baseline is known

    The detector must be driven by a single event loop. Frames can also be
    pushed directly with process(), which is how tests exercise it.
    """

    def __init__(self, source: Optional["FrameSource"] = None,
                 estimator: Optional["NoseEstimator"] = None,
                 on_bow: Optional[Callable[[int], None]] = None,
                 on_state_change: Optional[Callable[[DetectorState], None]] = None,
                 on_calibrated: Optional[Callable[[], None]] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.source = source
        self.estimator = estimator
        self.on_bow = on_bow
        self.on_state_change = on_state_change
        self.on_calibrated = on_calibrated
        self.clock = clock

        self.session = BowSession()
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._source_open = False
        self._estimator_loaded = False
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def state(self) -> DetectorState:
        return self.session.state

    @property
    def bow_count(self) -> int:
        return self.session.bow_count

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    async def start(self) -> bool:
        """
        Acquire the camera, load the pose model and begin a fresh session.

        Returns False if either collaborator is unavailable; nothing is left
        open in that case and the host should offer manual bows instead.
        """
        self.stop()
        self.session = BowSession()
        generation = self._generation

        if self.source is None or self.estimator is None:
            logger.warning("No camera or pose estimator configured")
            return False

        try:
            await asyncio.to_thread(self.source.open)
        except Exception as err:
            logger.warning("Camera unavailable: %s", err)
            return False
        self._source_open = True

        try:
            await asyncio.to_thread(self.estimator.load)
        except Exception as err:
            logger.error("Pose model failed to load: %s", err)
            self._release()
            return False
        self._estimator_loaded = True

        if generation != self._generation:
            # stop() was called while we were initializing
            self._release()
            return False

        self._running = True
        self._task = asyncio.get_running_loop().create_task(self._loop())
        self._task.add_done_callback(self._loop_done)
        return True

    def stop(self):
        """Halt frame processing and release the camera. Safe to call repeatedly."""
        self._generation += 1
        self._running = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._release()

    def _release(self):
        if self._source_open:
            self._source_open = False
            self.source.release()
        if self._estimator_loaded:
            self._estimator_loaded = False
            self.estimator.close()

    async def _loop(self):
        while self._running:
            nose_y = self._read_nose()
            if nose_y is not None:
                self.process(nose_y)
            await asyncio.sleep(0)

    def _loop_done(self, task: asyncio.Task):
        if task.cancelled():
            return
        err = task.exception()
        if err is not None:
            logger.error("Bow detection stopped: %r", err, exc_info=err)
            if task is self._task:
                self._running = False
                self._task = None

    def _read_nose(self) -> Optional[float]:
        # A frame without a usable landmark is simply skipped
        try:
            frame = self.source.read()
            if frame is None:
                return None
            return self.estimator.nose_y(frame, int(self.clock() * 1000))
        except Exception:
            logger.debug("Frame skipped", exc_info=True)
            return None

    # --------------------------------------------------------
    # State machine
    # --------------------------------------------------------

    def process(self, nose_y: float, now: Optional[float] = None):
        """Feed one nose-Y reading through the state machine."""
        session = self.session

        if session.state is DetectorState.CALIBRATING:
            session.samples.append(nose_y)
            if len(session.samples) >= CALIBRATION_FRAMES:
                session.baseline = median(session.samples)
                session.samples.clear()
                logger.info("Calibrated neutral nose-Y = %.3f", session.baseline)
                self._set_state(DetectorState.UPRIGHT)
                if self.on_calibrated:
                    self.on_calibrated()
            return

        now = self.clock() if now is None else now
        drop = nose_y - session.baseline

        if session.state is DetectorState.UPRIGHT:
            if drop > BOW_DROP and session.debounce_elapsed(now):
                self._count_bow(now)
                self._set_state(DetectorState.BOWING)
        elif session.state is DetectorState.BOWING:
            if drop < BOW_DROP:
                self._set_state(DetectorState.RETURNING)
        elif session.state is DetectorState.RETURNING:
            if drop < RETURN_DROP:
                self._set_state(DetectorState.UPRIGHT)

    def manual_bow(self, now: Optional[float] = None) -> bool:
        """
        Count a bow without the camera (fallback path).

        Subject to the same debounce as detected bows. Returns whether it counted.
        """
        now = self.clock() if now is None else now
        if not self.session.debounce_elapsed(now):
            return False
        self._count_bow(now)
        return True

    def _count_bow(self, now: float):
        self.session.last_trigger = now
        self.session.bow_count += 1
        logger.info("Bow %d", self.session.bow_count)
        if self.on_bow:
            self.on_bow(self.session.bow_count)

    def _set_state(self, state: DetectorState):
        self.session.state = state
        if self.on_state_change:
            self.on_state_change(state)
