# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Shapes and default implementations of the engine's collaborators.

Triggers come from motion sensing or manual requests, artifacts from the
capture device, timestamps from a real-time clock. Hardware drivers live
outside this package: a device clock is any callable returning a datetime
and an optional temperature, and SimulatedCapture stands in for a camera.
"""

import io
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Known event type tags. Other snake_case tags are accepted."""
    MOTION_DETECTION = "motion_detection"
    MANUAL_CAPTURE = "manual_capture"


@dataclass
class Trigger:
    """Something happened."""
    event_type: str
    trigger_payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class Artifact:
    """Captured artifact; data is exactly the bytes stored at reference."""
    data: bytes
    reference: Optional[str]
    encoding: str = "application/octet-stream"


@dataclass
class TimeReading:
    """Timestamp from the time collaborator."""
    timestamp: str  # ISO-8601
    source: str  # device | host
    temperature: Optional[float] = None


def utc_iso(dt: datetime) -> str:
    """
    Format as ISO-8601 UTC with millisecond precision.

    Naive datetimes are taken to be UTC.

    Example:
        >>> utc_iso(datetime(2024, 5, 1, 12, 0, 0))
        '2024-05-01T12:00:00.000Z'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


DeviceClockReader = Callable[[], tuple[datetime, Optional[float]]]


class Clock:
    """
    Time source with host-clock fallback.

    A device reader returns (datetime, temperature_c). Any exception from
    it falls back to the host clock for that reading.
    """

    def __init__(self, device_reader: Optional[DeviceClockReader] = None):
        self.device_reader = device_reader

    @property
    def source(self) -> str:
        return "device" if self.device_reader is not None else "host"

    def host_now(self) -> str:
        """Host clock instant as ISO-8601 UTC."""
        return utc_iso(datetime.now(timezone.utc))

    def read(self) -> TimeReading:
        """Read the device clock, or the host clock if unavailable."""
        if self.device_reader is not None:
            try:
                dt, temperature = self.device_reader()
                return TimeReading(timestamp=utc_iso(dt), source="device", temperature=temperature)
            except Exception as e:
                logger.warning(f"Device clock read failed, using host time: {e}")

        return TimeReading(timestamp=self.host_now(), source="host")


class SimulatedCapture:
    """
    Synthetic camera for development and testing without hardware.

    Frames are noise over a horizontal gradient, JPEG-encoded and written
    to capture_dir. The returned artifact carries the written bytes.
    """

    encoding = "image/jpeg"

    def __init__(
        self,
        capture_dir: Path,
        size: tuple[int, int] = (640, 480),
        quality: int = 85,
    ):
        width, height = size
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid size: {size}")

        self.capture_dir = Path(capture_dir)
        self.size = size
        self.quality = quality
        self.capture_count = 0

    def _render_frame(self) -> np.ndarray:
        width, height = self.size
        frame = np.random.randint(0, 64, (height, width, 3), dtype=np.uint16)
        gradient = np.linspace(0, 191, width, dtype=np.uint16)
        frame = frame + gradient[np.newaxis, :, np.newaxis]
        return np.clip(frame, 0, 255).astype(np.uint8)

    def capture(self) -> Artifact:
        """Render, encode and save one frame."""
        start_time = time.time()

        buffer = io.BytesIO()
        Image.fromarray(self._render_frame()).save(
            buffer, format="JPEG", quality=self.quality
        )
        data = buffer.getvalue()

        self.capture_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        path = self.capture_dir / f"IMG_{stamp}_{uuid.uuid4().hex[:8]}.jpg"
        with open(path, "wb") as f:
            f.write(data)

        self.capture_count += 1
        logger.info(
            f"Simulated capture {path.name}: {len(data)} bytes "
            f"in {time.time() - start_time:.3f}s"
        )
        return Artifact(data=data, reference=str(path), encoding=self.encoding)
