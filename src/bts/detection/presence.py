"""Face-based presence detection on still images (OpenCV Haar cascade)."""
from __future__ import annotations

import asyncio
import threading
import time
from typing import Optional

import cv2  # type: ignore
import numpy as np

from bts.domain.errors import ModelLoadError, ValidationError
from bts.domain.models import MediaBlob
from bts.logging import get_logger
from bts.verification.models import PresenceCheckResult

_LOG = get_logger(__name__)

FACE_CASCADE = "haarcascade_frontalface_default.xml"


class DetectionModels:
    """
    Process-wide holder for the detection assets. load() is idempotent and
    thread safe; only the first call does any work.
    """

    def __init__(self, cascade_name: str = FACE_CASCADE) -> None:
        self._cascade_name = cascade_name
        self._lock = threading.Lock()
        self._face: Optional[cv2.CascadeClassifier] = None
        self._loaded_at: Optional[int] = None

    @property
    def is_loaded(self) -> bool:
        return self._face is not None

    @property
    def loaded_at(self) -> Optional[int]:
        return self._loaded_at

    def load(self) -> None:
        with self._lock:
            if self._face is not None:
                return
            path = cv2.data.haarcascades + self._cascade_name
            _LOG.info("Loading face detection model from %s", path)
            try:
                classifier = cv2.CascadeClassifier(path)
            except cv2.error as e:
                raise ModelLoadError(f"Could not load face detection model: {e}") from e
            if classifier.empty():
                raise ModelLoadError(f"Could not load face detection model: {self._cascade_name}")
            self._face = classifier
            self._loaded_at = int(time.time() * 1000)

    def face_classifier(self) -> cv2.CascadeClassifier:
        self.load()
        assert self._face is not None
        return self._face


_shared: Optional[DetectionModels] = None
_shared_lock = threading.Lock()


def shared_models() -> DetectionModels:
    global _shared
    with _shared_lock:
        if _shared is None:
            _shared = DetectionModels()
        return _shared


def decode_image(image: MediaBlob) -> np.ndarray:
    buf = np.frombuffer(image.content, dtype=np.uint8)
    frame = cv2.imdecode(buf, cv2.IMREAD_COLOR) if buf.size else None
    if frame is None:
        raise ValidationError("Selfie could not be decoded as an image", details=image.summary())
    return frame


class OpenCVPresenceDetector:
    """
    Passes when at least one face is found. Confidence grows with the size of
    the largest face relative to the image: 60 for a tiny face, 100 once the
    face covers a tenth of the frame.
    """

    def __init__(self, models: DetectionModels, *, min_face_px: int = 30) -> None:
        self._models = models
        self._min_face_px = min_face_px

    async def detect(self, image: MediaBlob) -> PresenceCheckResult:
        return await asyncio.to_thread(self.detect_sync, image)

    def detect_sync(self, image: MediaBlob) -> PresenceCheckResult:
        frame = decode_image(image)
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        gray = cv2.equalizeHist(gray)

        faces = self._models.face_classifier().detectMultiScale(
            gray,
            scaleFactor=1.1,
            minNeighbors=5,
            minSize=(self._min_face_px, self._min_face_px),
        )
        count = len(faces)
        if count == 0:
            return PresenceCheckResult(passed=False, confidence=0, details="No face detected in selfie")

        h, w = gray.shape[:2]
        largest = max(int(fw) * int(fh) for (_, _, fw, fh) in faces)
        ratio = largest / float(w * h)
        confidence = int(round(60 + 40 * min(1.0, ratio / 0.1)))
        details = "Face detected in selfie" if count == 1 else f"{count} faces detected in selfie"
        return PresenceCheckResult(passed=True, confidence=confidence, details=details, face_count=count)
