# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Provenance engine: signed, hash-chained event records.

Each record binds an event to its artifact hash and timestamps, is signed,
and is linked to the previous record by hash. The engine owns the cursor
(the current chain tip). Every read-cursor / sign / append / advance-cursor
sequence runs under one lock, so concurrent triggers never chain against
the same stale tip.
"""

import json
import logging
import threading
import uuid
from typing import Callable, List, Optional

from .collaborators import Clock
from .crypto.signers import SignResult, Signer
from .exceptions import ChainAppendFailure, MalformedRecord, NotFound, SignerUnavailable
from .hashing import (
    build_signable_payload,
    canonical_json,
    compute_link_hash,
    sha256_hex,
)
from .models.schemas import (
    ChainIssue,
    ChainStats,
    ChainStatus,
    ChainVerification,
    EventRecord,
    SignatureMetadata,
    VerificationResult,
)
from .storage.chain_store import ChainStore
from .storage.event_store import EventStore

logger = logging.getLogger(__name__)


class ProvenanceEngine:
    """Creates and verifies provenance records."""

    def __init__(
        self,
        event_store: EventStore,
        chain_store: ChainStore,
        signer: Signer,
        clock: Optional[Clock] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        """
        Args:
            event_store: Event record storage
            chain_store: Chain link storage
            signer: Signer (normally a FallbackSigner)
            clock: Time collaborator (host clock if None)
            id_factory: Event id generator
        """
        self.event_store = event_store
        self.chain_store = chain_store
        self.signer = signer
        self.clock = clock or Clock()
        self.id_factory = id_factory

        self._lock = threading.Lock()
        self._cursor: Optional[str] = None

    @property
    def cursor(self) -> Optional[str]:
        """Current chain tip hash (None before the first link)."""
        return self._cursor

    def initialize(self) -> None:
        """Seed the cursor from the chain tail."""
        with self._lock:
            self._cursor = self.chain_store.tail_hash()
        if self._cursor:
            logger.info(f"Provenance chain resumed at tip {self._cursor[:16]}...")
        else:
            logger.info("Provenance chain is empty, next record is genesis")

    def create_record(
        self,
        event_type: str,
        trigger_payload: Optional[dict],
        artifact_bytes: bytes,
        artifact_reference: Optional[str],
        artifact_encoding: Optional[str] = None,
    ) -> EventRecord:
        """
        Create, sign, persist and chain one event record.

        A signer failure produces an unsigned record instead of an error.

        Args:
            event_type: Event type tag
            trigger_payload: JSON-compatible trigger data
            artifact_bytes: Artifact bytes exactly as persisted at artifact_reference
            artifact_reference: Artifact locator
            artifact_encoding: Artifact media type

        Returns:
            Finalized record with chain_position and current_hash

        Raises:
            DuplicateEvent: If the generated event_id already exists
            StoreTimeout: If the event record could not be written
            StoreError: If the store rejected the event record write
            ChainAppendFailure: If the link could not be appended; the event
                record stays orphaned and the cursor is not advanced
        """
        if not event_type:
            raise ValueError("event_type is required")

        # Nothing here touches the cursor
        artifact_hash = sha256_hex(artifact_bytes)
        payload_data = json.loads(canonical_json(trigger_payload or {}))
        event_id = self.id_factory()
        timestamp = self.clock.host_now()
        reading = self.clock.read()
        device_timestamp = reading.timestamp if reading.source == "device" else timestamp

        with self._lock:
            previous_hash = self._cursor
            payload = build_signable_payload(
                event_id=event_id,
                timestamp=timestamp,
                device_timestamp=device_timestamp,
                event_type=event_type,
                trigger_payload=payload_data,
                artifact_hash=artifact_hash,
                previous_hash=previous_hash,
            )

            sign_result = self._sign(payload)
            signature_hex = sign_result.signature_hex if sign_result else None
            current_hash = compute_link_hash(payload, signature_hex)

            if sign_result:
                metadata = SignatureMetadata(
                    algorithm=sign_result.algorithm,
                    key_id=sign_result.key_id,
                    trust=sign_result.trust.value,
                )
            else:
                metadata = SignatureMetadata(trust="absent")

            record = EventRecord(
                event_id=event_id,
                timestamp=timestamp,
                device_timestamp=device_timestamp,
                time_source=reading.source,
                temperature=reading.temperature,
                event_type=event_type,
                trigger_payload=payload_data,
                artifact_reference=artifact_reference,
                artifact_encoding=artifact_encoding,
                artifact_hash=artifact_hash,
                previous_hash=previous_hash,
                signature=signature_hex,
                signature_metadata=metadata,
                verified=sign_result is not None,
            )

            self.event_store.put(record)
            try:
                position = self.chain_store.append(event_id, previous_hash, current_hash)
            except ChainAppendFailure as e:
                logger.error(f"Event {event_id} orphaned, cursor stays at {previous_hash}: {e.reason}")
                raise

            self._cursor = current_hash

        logger.info(
            f"Provenance record {event_id} at position {position} "
            f"({metadata.trust}, hash {current_hash[:16]}...)"
        )
        return record.model_copy(update={"chain_position": position, "current_hash": current_hash})

    def _sign(self, payload: bytes) -> Optional[SignResult]:
        try:
            return self.signer.sign(payload)
        except SignerUnavailable as e:
            logger.warning(f"Signing unavailable, recording unsigned event: {e}")
            return None

    def signable_payload(self, record: EventRecord) -> bytes:
        """Rebuild the exact signed bytes from a stored record."""
        return build_signable_payload(
            event_id=record.event_id,
            timestamp=record.timestamp,
            device_timestamp=record.device_timestamp,
            event_type=record.event_type,
            trigger_payload=record.trigger_payload,
            artifact_hash=record.artifact_hash,
            previous_hash=record.previous_hash,
        )

    def compute_current_hash(self, record: EventRecord) -> str:
        """Recompute the link hash from a stored record."""
        return compute_link_hash(self.signable_payload(record), record.signature)

    def get_event(self, event_id: str) -> EventRecord:
        """
        Raises:
            NotFound: If no such event
            MalformedRecord: If the stored record no longer decodes
        """
        record = self.event_store.get(event_id)
        if record is None:
            raise NotFound(event_id)
        return record

    def list_events(self, limit: int = 50, offset: int = 0) -> List[EventRecord]:
        return self.event_store.list(limit=limit, offset=offset)

    def verify_event(self, event_id: str) -> VerificationResult:
        """
        Re-verify one event's signature against its stored fields.

        An unsigned event is a normal result (valid=False, reason=unsigned),
        as is a stored record that no longer decodes (reason=malformed_record).

        Raises:
            NotFound: If no such event
        """
        try:
            record = self.get_event(event_id)
        except MalformedRecord as e:
            logger.warning(f"Cannot verify event {event_id}: {e.reason}")
            return VerificationResult(event_id=event_id, valid=False, reason="malformed_record")
        metadata = record.signature_metadata

        if record.signature is None:
            return VerificationResult(
                event_id=event_id,
                valid=False,
                reason="unsigned",
                signature_metadata=metadata,
            )

        try:
            sign_result = SignResult.from_stored(
                record.signature,
                metadata.algorithm or "",
                metadata.key_id or "",
                metadata.trust,
            )
        except ValueError as e:
            logger.warning(f"Malformed signature on event {event_id}: {e}")
            return VerificationResult(
                event_id=event_id,
                valid=False,
                reason="malformed_signature",
                signature_metadata=metadata,
            )

        valid = self.signer.verify(self.signable_payload(record), sign_result)
        if not valid:
            logger.warning(f"Signature verification failed for event {event_id}")

        return VerificationResult(
            event_id=event_id,
            valid=valid,
            reason=None if valid else "signature_mismatch",
            signature_metadata=metadata,
        )

    def verify_chain(self) -> ChainVerification:
        """
        Walk the whole chain and report every integrity violation as data.

        Checks contiguous positions from 1, previous_hash adjacency, that
        each stored current_hash reproduces from its event record, that
        every link has an event record, and that the record still decodes.
        """
        links = self.chain_store.read_ordered()
        records = self.event_store.get_many(link.event_id for link in links)

        issues: List[ChainIssue] = []
        prior_hash: Optional[str] = None

        for index, link in enumerate(links, start=1):
            if link.position != index:
                issues.append(ChainIssue(
                    position=link.position,
                    issue="position_gap",
                    expected=str(index),
                    actual=str(link.position),
                ))

            if link.previous_hash != prior_hash:
                issues.append(ChainIssue(
                    position=link.position,
                    issue="broken_link",
                    expected=prior_hash,
                    actual=link.previous_hash,
                ))

            record = records.get(link.event_id)
            if record is None:
                issues.append(ChainIssue(
                    position=link.position,
                    issue="missing_event",
                    expected=link.event_id,
                    actual=None,
                ))
            elif isinstance(record, MalformedRecord):
                issues.append(ChainIssue(
                    position=link.position,
                    issue="malformed_record",
                    expected=link.current_hash,
                    actual=record.reason,
                ))
            else:
                recomputed = self.compute_current_hash(record)
                if recomputed != link.current_hash:
                    issues.append(ChainIssue(
                        position=link.position,
                        issue="hash_mismatch",
                        expected=link.current_hash,
                        actual=recomputed,
                    ))

            prior_hash = link.current_hash

        if issues:
            logger.warning(f"Provenance chain has {len(issues)} integrity issue(s)")

        return ChainVerification(valid=not issues, total_links=len(links), issues=issues)

    def stats(self) -> ChainStats:
        return self.event_store.stats()

    def chain_status(self) -> ChainStatus:
        """Chain verification plus event counters."""
        verification = self.verify_chain()
        stats = self.stats()

        signature_rate = round(stats.signed / stats.total * 100, 1) if stats.total else 0.0
        if stats.orphaned:
            logger.warning(f"{stats.orphaned} orphaned event(s) have no chain link")

        return ChainStatus(
            chain_valid=verification.valid,
            total_events=stats.total,
            signed_events=stats.signed,
            verified_events=stats.verified,
            orphaned_events=stats.orphaned,
            signature_rate=signature_rate,
            issues=verification.issues,
        )
