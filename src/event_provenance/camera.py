# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Camera application: trigger → capture → provenance record → broadcast.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, List, Optional

from .collaborators import Clock, EventType, SimulatedCapture, Trigger
from .config import Settings
from .crypto.signers import FallbackSigner, SecureElement, create_signer
from .database.connection import Database
from .exceptions import SignerUnavailable
from .models.schemas import EventRecord, SystemStatus
from .provenance import ProvenanceEngine
from .storage.chain_store import ChainStore
from .storage.event_store import EventStore

logger = logging.getLogger(__name__)

RecordListener = Callable[[EventRecord], None]


class ProvenanceCamera:
    """
    Main application object orchestrating capture and provenance.

    Listeners receive every finalized record (e.g. for WebSocket
    broadcast). A failing listener is logged and skipped.
    """

    def __init__(
        self,
        engine: ProvenanceEngine,
        capture: SimulatedCapture,
        device_id: str = "camera_001",
    ):
        self.engine = engine
        self.capture = capture
        self.device_id = device_id
        self._listeners: List[RecordListener] = []
        self._listeners_lock = threading.Lock()

    def add_listener(self, listener: RecordListener) -> None:
        with self._listeners_lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: RecordListener) -> None:
        with self._listeners_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def handle_trigger(self, trigger: Trigger) -> EventRecord:
        """
        Capture an artifact for the trigger and record it.

        Returns:
            Finalized provenance record
        """
        logger.info(f"Trigger {trigger.event_type}, capturing frame...")
        artifact = self.capture.capture()

        record = self.engine.create_record(
            event_type=trigger.event_type,
            trigger_payload=trigger.trigger_payload,
            artifact_bytes=artifact.data,
            artifact_reference=artifact.reference,
            artifact_encoding=artifact.encoding,
        )

        self._broadcast(record)
        return record

    def handle_motion(self, acceleration: dict) -> EventRecord:
        """Record a motion interrupt with its acceleration sample."""
        return self.handle_trigger(Trigger(
            event_type=EventType.MOTION_DETECTION.value,
            trigger_payload=dict(acceleration),
        ))

    def manual_capture(self) -> EventRecord:
        """Record a manual capture (empty trigger payload)."""
        return self.handle_trigger(Trigger(event_type=EventType.MANUAL_CAPTURE.value))

    def _broadcast(self, record: EventRecord) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(record)
            except Exception as e:
                logger.error(f"Record listener failed for {record.event_id}: {e}")

    def status(self) -> SystemStatus:
        signer = self.engine.signer
        trust = signer.trust
        if isinstance(signer, FallbackSigner):
            key_id = signer.software.key_id
            key_persisted = signer.software.persisted
            if signer.hardware is not None:
                try:
                    key_id = signer.hardware.key_id
                except SignerUnavailable as e:
                    logger.warning(f"Secure element unavailable: {e}")
                    trust = signer.software.trust
        else:
            key_id = getattr(signer, "key_id", "unknown")
            key_persisted = bool(getattr(signer, "persisted", False))

        return SystemStatus(
            device_id=self.device_id,
            signer_trust=trust.value,
            signer_key_id=key_id,
            signer_key_persisted=key_persisted,
            clock_source=self.engine.clock.source,
            cursor=self.engine.cursor,
        )

    def close(self) -> None:
        self.engine.event_store.db.dispose()
        logger.info("Provenance camera shut down")


def build_camera(
    config: Settings,
    element: Optional[SecureElement] = None,
    clock: Optional[Clock] = None,
) -> ProvenanceCamera:
    """
    Wire database, stores, signer, clock and capture from settings.

    Creates tables if needed and seeds the engine cursor from the chain tail.
    """
    db = Database(config.database_url, timeout=config.store_timeout_seconds)
    db.create_tables()

    key_file = config.signing_key_file
    signer = create_signer(
        key_path=Path(key_file) if key_file else None,
        element=element,
        timeout=config.signer_timeout_seconds,
    )

    engine = ProvenanceEngine(
        event_store=EventStore(db),
        chain_store=ChainStore(db),
        signer=signer,
        clock=clock or Clock(),
    )
    engine.initialize()

    capture = SimulatedCapture(
        Path(config.capture_dir),
        size=(config.frame_width, config.frame_height),
    )
    return ProvenanceCamera(engine, capture, device_id=config.device_id)
