"""
Webcam capture and pose estimation collaborators for the bow detector.

The detector only needs two capabilities: a source of video frames and
something that turns a frame into the nose's vertical position. Both are
protocols so tests (or another runtime) can supply their own.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Protocol

import cv2
import mediapipe as mp
import numpy as np
import requests
from mediapipe.tasks import python as mp_tasks
from mediapipe.tasks.python import vision

logger = logging.getLogger(__name__)

POSE_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/pose_landmarker/"
    "pose_landmarker_lite/float16/1/pose_landmarker_lite.task"
)
DEFAULT_POSE_MODEL = Path(__file__).parent.parent / "models" / "pose_landmarker_lite.task"

NOSE = 0  # pose landmark index


class FrameSource(Protocol):
    def open(self) -> None: ...
    def read(self) -> Optional[np.ndarray]: ...
    def release(self) -> None: ...


class NoseEstimator(Protocol):
    def load(self) -> None: ...
    def nose_y(self, frame: np.ndarray, timestamp_ms: int) -> Optional[float]: ...
    def close(self) -> None: ...


class CameraSource:
    """User-facing webcam via OpenCV, mirrored like a selfie view."""

    def __init__(self, index=0, width=640, height=480, mirror=True):
        self.index = index
        self.width = width
        self.height = height
        self.mirror = mirror
        self._capture = None

    def open(self):
        capture = cv2.VideoCapture(self.index)
        if not capture.isOpened():
            capture.release()
            raise RuntimeError(f"Could not open camera {self.index}")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._capture = capture

    def read(self):
        if self._capture is None:
            return None
        ok, frame = self._capture.read()
        if not ok:
            return None
        return cv2.flip(frame, 1) if self.mirror else frame

    def release(self):
        if self._capture is not None:
            self._capture.release()
            self._capture = None


def ensure_pose_model(path=None, url=POSE_MODEL_URL, timeout=30):
    """
    Return a local path to the pose landmarker model, downloading it on first use.

    Args:
        path: target file; defaults to $THREEBOWS_POSE_MODEL or models/pose_landmarker_lite.task
    """
    model_path = Path(path or os.getenv("THREEBOWS_POSE_MODEL") or DEFAULT_POSE_MODEL)
    if model_path.exists():
        return model_path

    logger.info("Downloading pose model to %s", model_path)
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    model_path.parent.mkdir(parents=True, exist_ok=True)
    model_path.write_bytes(response.content)
    return model_path


class PoseNoseEstimator:
    """MediaPipe PoseLandmarker (VIDEO mode, single pose) reporting the nose landmark."""

    def __init__(self, model_path=None, min_confidence=0.5):
        self.model_path = model_path
        self.min_confidence = min_confidence
        self._landmarker = None
        self._last_ts = -1

    def load(self):
        model_path = ensure_pose_model(self.model_path)
        options = vision.PoseLandmarkerOptions(
            base_options=mp_tasks.BaseOptions(model_asset_path=str(model_path)),
            running_mode=vision.RunningMode.VIDEO,
            num_poses=1,
            min_pose_detection_confidence=self.min_confidence,
            min_tracking_confidence=self.min_confidence,
        )
        self._landmarker = vision.PoseLandmarker.create_from_options(options)
        self._last_ts = -1

    def nose_y(self, frame, timestamp_ms):
        if self._landmarker is None:
            return None
        # VIDEO mode rejects timestamps that do not increase
        timestamp_ms = max(int(timestamp_ms), self._last_ts + 1)
        self._last_ts = timestamp_ms

        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
        result = self._landmarker.detect_for_video(image, timestamp_ms)
        if not result.pose_landmarks:
            return None
        return result.pose_landmarks[0][NOSE].y

    def close(self):
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
