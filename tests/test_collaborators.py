"""Tests for clock, capture and the camera application."""

import time
from datetime import datetime, timezone
from pathlib import Path

import pytest

from event_provenance.camera import ProvenanceCamera, build_camera
from event_provenance.collaborators import Clock, SimulatedCapture, Trigger, utc_iso
from event_provenance.config import Settings
from event_provenance.hashing import sha256_hex


class TestClock:
    """Test time source and fallback."""

    def test_utc_iso(self):
        """Test millisecond UTC formatting."""
        assert utc_iso(datetime(2024, 5, 1, 12, 0, 0)) == "2024-05-01T12:00:00.000Z"

    def test_host_clock(self):
        """Test host clock reading."""
        reading = Clock().read()
        assert reading.source == "host"
        assert reading.timestamp.endswith("Z")
        assert reading.temperature is None

    def test_device_clock(self):
        """Test device reading carries temperature."""
        clock = Clock(lambda: (datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc), 23.5))
        reading = clock.read()

        assert clock.source == "device"
        assert reading.source == "device"
        assert reading.timestamp == "2024-05-01T12:00:00.000Z"
        assert reading.temperature == 23.5

    def test_device_failure_falls_back(self):
        """Test an unreachable device clock falls back to host time."""

        def broken():
            raise OSError("RTC not responding")

        reading = Clock(broken).read()
        assert reading.source == "host"


class TestSimulatedCapture:
    """Test synthetic capture."""

    def test_capture_writes_returned_bytes(self, tmp_path):
        """Test artifact bytes are exactly the written file."""
        capture = SimulatedCapture(tmp_path / "captures", size=(32, 24))
        artifact = capture.capture()

        assert artifact.encoding == "image/jpeg"
        assert artifact.data[:2] == b"\xff\xd8"
        assert Path(artifact.reference).read_bytes() == artifact.data
        assert capture.capture_count == 1

    def test_invalid_size(self, tmp_path):
        """Test non-positive frame size is rejected."""
        with pytest.raises(ValueError):
            SimulatedCapture(tmp_path, size=(0, 10))


class TestProvenanceCamera:
    """Test trigger handling and status."""

    def test_manual_capture(self, camera):
        """Test manual capture records an artifact hash of the stored file."""
        record = camera.manual_capture()

        assert record.event_type == "manual_capture"
        assert record.trigger_payload == {}
        assert record.artifact_hash == sha256_hex(Path(record.artifact_reference).read_bytes())

    def test_motion_payload(self, camera):
        """Test motion trigger payload is recorded."""
        record = camera.handle_motion({"x": 0.1, "y": -0.2, "z": 1.0})
        assert record.event_type == "motion_detection"
        assert record.trigger_payload == {"x": 0.1, "y": -0.2, "z": 1.0}

    def test_listeners(self, camera):
        """Test listeners receive records and a failing one is skipped."""
        received = []

        def failing(record):
            raise RuntimeError("socket closed")

        camera.add_listener(failing)
        camera.add_listener(received.append)
        record = camera.handle_trigger(Trigger(event_type="door_open", trigger_payload={"door": 2}))

        assert [r.event_id for r in received] == [record.event_id]

        camera.remove_listener(received.append)
        camera.manual_capture()
        assert len(received) == 1

    def test_status(self, camera, create):
        """Test status reports signer and cursor."""
        last = create(1)[0]
        status = camera.status()

        assert status.device_id == "test_camera"
        assert status.signer_trust == "software"
        assert status.signer_key_id.startswith("sw:")
        assert status.signer_key_persisted
        assert status.clock_source == "host"
        assert status.cursor == last.current_hash

    def test_status_with_hung_secure_element(self, engine, hardware_signer, secure_element, tmp_path):
        """Test status stays responsive when the secure element stops answering."""
        secure_element.hang_public_key = True
        hardware_signer.hardware.timeout = 0.1
        engine.signer = hardware_signer
        camera = ProvenanceCamera(engine, SimulatedCapture(tmp_path / "captures", size=(64, 48)))

        start = time.monotonic()
        status = camera.status()

        assert time.monotonic() - start < 1.0
        assert status.signer_trust == "software"
        assert status.signer_key_id == hardware_signer.software.key_id


class TestBuildCamera:
    """Test wiring from settings."""

    def test_build_and_resume(self, tmp_path):
        """Test a rebuilt camera resumes the same chain with the same key."""
        config = Settings(
            database_url=f"sqlite:///{tmp_path / 'db' / 'provenance.db'}",
            signing_key_path=str(tmp_path / "keys" / "signer.pem"),
            capture_dir=str(tmp_path / "captures"),
            frame_width=32,
            frame_height=24,
        )

        camera = build_camera(config)
        first = camera.manual_capture()
        camera.close()

        camera = build_camera(config)
        try:
            assert camera.engine.cursor == first.current_hash
            assert camera.engine.verify_event(first.event_id).valid
            second = camera.manual_capture()
            assert second.previous_hash == first.current_hash
        finally:
            camera.close()

    def test_ephemeral_key(self, tmp_path):
        """Test an empty key path gives an unpersisted key."""
        config = Settings(
            database_url=f"sqlite:///{tmp_path / 'provenance.db'}",
            signing_key_path="",
            capture_dir=str(tmp_path / "captures"),
        )
        camera = build_camera(config)
        try:
            assert not camera.status().signer_key_persisted
        finally:
            camera.close()
