"""Pytest configuration and fixtures."""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from itertools import count

import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from sqlalchemy.exc import OperationalError

from event_provenance.collaborators import Clock, SimulatedCapture
from event_provenance.camera import ProvenanceCamera
from event_provenance.crypto.signers import (
    FallbackSigner,
    HardwareSigner,
    SecureElement,
    SoftwareSigner,
)
from event_provenance.crypto.signing import generate_private_key, sign_data
from event_provenance.database import Database
from event_provenance.provenance import ProvenanceEngine
from event_provenance.storage import ChainStore, EventStore


class MemorySecureElement(SecureElement):
    """Secure element backed by an in-process key, with switchable failure or hang."""

    slot = "slot3"

    def __init__(self):
        self._key = generate_private_key()
        self.fail = False
        self.hang = False
        self.hang_public_key = False
        self.released = threading.Event()
        self.sign_calls = 0

    def sign(self, data: bytes) -> bytes:
        self.sign_calls += 1
        if self.hang:
            self.released.wait()
        if self.fail:
            raise OSError("I2C bus timeout")
        return sign_data(data, self._key)

    def public_key(self) -> ec.EllipticCurvePublicKey:
        if self.hang_public_key:
            self.released.wait()
        return self._key.public_key()


class FixedClock(Clock):
    """Host clock that ticks one second per reading."""

    def __init__(self, device_reader=None):
        super().__init__(device_reader)
        self._ticks = count()

    def host_now(self) -> str:
        second = next(self._ticks)
        return datetime(2024, 5, 1, 12, 0, second % 60, tzinfo=timezone.utc).isoformat(
            timespec="milliseconds"
        ).replace("+00:00", "Z")


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite database with tables created."""
    database = Database(f"sqlite:///{tmp_path / 'provenance.db'}")
    database.create_tables()
    yield database
    database.dispose()


@pytest.fixture
def locked_db(db):
    """Same database, but every session fails as if another writer held the lock."""
    locked = Database(db.url, timeout=0.1)

    @contextmanager
    def session():
        raise OperationalError("INSERT INTO events", {}, sqlite3.OperationalError("database is locked"))
        yield

    locked.session = session
    yield locked
    locked.dispose()


@pytest.fixture
def event_store(db):
    return EventStore(db)


@pytest.fixture
def chain_store(db):
    return ChainStore(db)


@pytest.fixture
def software_signer(tmp_path):
    return SoftwareSigner.load_or_generate(tmp_path / "keys" / "signer.pem")


@pytest.fixture
def secure_element():
    element = MemorySecureElement()
    yield element
    element.released.set()


@pytest.fixture
def signer(software_signer):
    return FallbackSigner(software_signer)


@pytest.fixture
def hardware_signer(software_signer, secure_element):
    return FallbackSigner(
        software_signer,
        hardware=HardwareSigner(secure_element, timeout=2.0),
    )


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def engine(event_store, chain_store, signer, clock):
    provenance = ProvenanceEngine(event_store, chain_store, signer, clock=clock)
    provenance.initialize()
    return provenance


@pytest.fixture
def camera(engine, tmp_path):
    capture = SimulatedCapture(tmp_path / "captures", size=(64, 48))
    return ProvenanceCamera(engine, capture, device_id="test_camera")


@pytest.fixture
def create(engine):
    """Create n records with distinct artifacts."""

    def _create(n=1, event_type="motion_detection"):
        records = []
        for i in range(n):
            records.append(engine.create_record(
                event_type=event_type,
                trigger_payload={"x": 0.1 * i, "y": -0.5, "z": 1.0},
                artifact_bytes=f"frame-{i}".encode(),
                artifact_reference=f"/captures/frame_{i}.jpg",
                artifact_encoding="image/jpeg",
            ))
        return records

    return _create
