from types import SimpleNamespace

import numpy as np
import pytest
import requests

from threebows import capture
from threebows.capture import CameraSource, PoseNoseEstimator, ensure_pose_model


class FakeVideoCapture:
    def __init__(self, index, opened=True):
        self.index = index
        self.opened = opened
        self.released = False
        self.props = {}
        self.frame = np.arange(6, dtype=np.uint8).reshape(1, 2, 3)

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        self.props[prop] = value

    def read(self):
        return True, self.frame

    def release(self):
        self.released = True


class FakeLandmarker:
    def __init__(self, landmarks=None):
        self.landmarks = landmarks
        self.timestamps = []
        self.closed = False

    def detect_for_video(self, image, timestamp_ms):
        self.timestamps.append(timestamp_ms)
        return SimpleNamespace(pose_landmarks=self.landmarks)

    def close(self):
        self.closed = True


def frame():
    return np.zeros((4, 4, 3), dtype=np.uint8)


def test_camera_source_mirrors_frames(monkeypatch):
    captures = []

    def open_capture(index):
        captures.append(FakeVideoCapture(index))
        return captures[-1]

    monkeypatch.setattr(capture.cv2, "VideoCapture", open_capture)
    source = CameraSource(index=2)
    assert source.read() is None

    source.open()
    mirrored = source.read()
    assert captures[0].index == 2
    assert (mirrored[0, 0] == captures[0].frame[0, 1]).all()

    source.release()
    assert captures[0].released
    assert source.read() is None


def test_camera_source_open_failure(monkeypatch):
    failed = FakeVideoCapture(0, opened=False)
    monkeypatch.setattr(capture.cv2, "VideoCapture", lambda index: failed)
    with pytest.raises(RuntimeError, match="Could not open camera 0"):
        CameraSource().open()
    assert failed.released


def test_nose_y_timestamps_always_increase():
    nose = SimpleNamespace(y=0.42)
    landmarker = FakeLandmarker(landmarks=[[nose]])
    estimator = PoseNoseEstimator()
    estimator._landmarker = landmarker

    values = [estimator.nose_y(frame(), ts) for ts in (100, 100, 50, 200)]

    assert values == [0.42] * 4
    assert landmarker.timestamps == [100, 101, 102, 200]


def test_nose_y_without_pose_or_model():
    estimator = PoseNoseEstimator()
    assert estimator.nose_y(frame(), 0) is None

    estimator._landmarker = FakeLandmarker(landmarks=[])
    assert estimator.nose_y(frame(), 0) is None

    landmarker = estimator._landmarker
    estimator.close()
    assert landmarker.closed
    assert estimator.nose_y(frame(), 1) is None


def test_ensure_pose_model_uses_existing_file(tmp_path, monkeypatch):
    model = tmp_path / "pose.task"
    model.write_bytes(b"model")

    def no_download(*args, **kwargs):
        raise AssertionError("should not download")

    monkeypatch.setattr(requests, "get", no_download)
    assert ensure_pose_model(model) == model

    monkeypatch.setenv("THREEBOWS_POSE_MODEL", str(model))
    assert ensure_pose_model() == model


def test_ensure_pose_model_downloads_once(tmp_path, monkeypatch):
    model = tmp_path / "models" / "pose.task"
    urls = []

    def fake_get(url, timeout):
        urls.append(url)
        return SimpleNamespace(content=b"weights", raise_for_status=lambda: None)

    monkeypatch.setattr(requests, "get", fake_get)
    assert ensure_pose_model(model) == model
    assert ensure_pose_model(model) == model
    assert model.read_bytes() == b"weights"
    assert urls == [capture.POSE_MODEL_URL]
