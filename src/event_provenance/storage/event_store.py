# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Durable event record storage."""

import json
import logging
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from ..database.connection import Database
from ..database.models import ChainLinkDB, EventRecordDB
from ..exceptions import DuplicateEvent, MalformedRecord, StoreError, StoreTimeout
from ..hashing import canonical_json
from ..models.schemas import ChainStats, EventRecord, SignatureMetadata

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500


class EventStore:
    """Event records, joined with their chain links for display."""

    def __init__(self, db: Database):
        self.db = db

    def put(self, record: EventRecord) -> None:
        """
        Write one event record.

        Raises:
            DuplicateEvent: If event_id already exists
            StoreTimeout: If the write could not complete in time
            StoreError: If the store rejected the write for another reason
        """
        meta = record.signature_metadata
        row = EventRecordDB(
            event_id=record.event_id,
            timestamp=record.timestamp,
            device_timestamp=record.device_timestamp,
            time_source=record.time_source,
            temperature=record.temperature,
            event_type=record.event_type,
            trigger_payload=canonical_json(record.trigger_payload).decode('utf-8'),
            artifact_reference=record.artifact_reference,
            artifact_encoding=record.artifact_encoding,
            artifact_hash=record.artifact_hash,
            previous_hash=record.previous_hash,
            signature=record.signature,
            signature_algorithm=meta.algorithm,
            signature_key_id=meta.key_id,
            signature_trust=meta.trust,
            verified=record.verified,
        )

        try:
            with self.db.session() as db:
                exists = db.execute(
                    select(EventRecordDB.id).where(EventRecordDB.event_id == record.event_id)
                ).scalar_one_or_none()
                if exists is not None:
                    raise DuplicateEvent(record.event_id)
                db.add(row)
        except IntegrityError as e:
            if self._exists(record.event_id):
                raise DuplicateEvent(record.event_id) from e
            raise StoreError(f"Event write rejected for {record.event_id}: {e.orig}") from e
        except OperationalError as e:
            raise StoreTimeout(f"Event write failed for {record.event_id}: {e.orig}") from e
        except SQLAlchemyError as e:
            raise StoreError(f"Event write failed for {record.event_id}: {e}") from e

    def _exists(self, event_id: str) -> bool:
        try:
            with self.db.session() as db:
                return db.execute(
                    select(EventRecordDB.id).where(EventRecordDB.event_id == event_id)
                ).scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            raise StoreError(f"Event lookup failed for {event_id}: {e}") from e

    def get(self, event_id: str) -> Optional[EventRecord]:
        """
        Event record by id, with chain position if linked.

        Raises:
            MalformedRecord: If the stored row no longer decodes
        """
        with self.db.session() as db:
            row = db.execute(
                select(EventRecordDB, ChainLinkDB)
                .outerjoin(ChainLinkDB, ChainLinkDB.event_id == EventRecordDB.event_id)
                .where(EventRecordDB.event_id == event_id)
            ).first()
            if row is None:
                return None
            return _to_record(row[0], row[1])

    def get_many(self, event_ids: Iterable[str]) -> dict[str, Union[EventRecord, MalformedRecord]]:
        """
        Event records keyed by event_id; unknown ids are absent.

        A row that no longer decodes maps to its MalformedRecord error
        instead of a record, so one bad row cannot hide the others.
        """
        ids = list(event_ids)
        if not ids:
            return {}
        with self.db.session() as db:
            rows = db.execute(
                select(EventRecordDB).where(EventRecordDB.event_id.in_(ids))
            ).scalars().all()
            found: dict[str, Union[EventRecord, MalformedRecord]] = {}
            for row in rows:
                try:
                    found[row.event_id] = _to_record(row, None)
                except MalformedRecord as e:
                    found[row.event_id] = e
            return found

    def list(self, limit: int = 50, offset: int = 0) -> List[EventRecord]:
        """
        Records newest first by write order, with chain position attached.

        Rows that no longer decode are skipped with a warning; verify_chain
        reports them.

        Args:
            limit: Page size (clamped to 1..MAX_PAGE_SIZE)
            offset: Records to skip
        """
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)

        with self.db.session() as db:
            rows = db.execute(
                select(EventRecordDB, ChainLinkDB)
                .outerjoin(ChainLinkDB, ChainLinkDB.event_id == EventRecordDB.event_id)
                .order_by(EventRecordDB.id.desc())
                .limit(limit)
                .offset(offset)
            ).all()
            records = []
            for event, link in rows:
                try:
                    records.append(_to_record(event, link))
                except MalformedRecord as e:
                    logger.warning(f"Skipping malformed event in listing: {e}")
            return records

    def stats(self) -> ChainStats:
        """Counts of total, signed, verified and orphaned (unchained) events."""
        with self.db.session() as db:
            total = db.execute(select(func.count(EventRecordDB.id))).scalar_one()
            signed = db.execute(
                select(func.count(EventRecordDB.id)).where(EventRecordDB.signature.is_not(None))
            ).scalar_one()
            verified = db.execute(
                select(func.count(EventRecordDB.id)).where(EventRecordDB.verified.is_(True))
            ).scalar_one()
            orphaned = db.execute(
                select(func.count(EventRecordDB.id))
                .select_from(EventRecordDB)
                .outerjoin(ChainLinkDB, ChainLinkDB.event_id == EventRecordDB.event_id)
                .where(ChainLinkDB.id.is_(None))
            ).scalar_one()

        return ChainStats(total=total, signed=signed, verified=verified, orphaned=orphaned)


def _to_record(row: EventRecordDB, link: Optional[ChainLinkDB]) -> EventRecord:
    try:
        return _decode(row, link)
    except (ValueError, TypeError) as e:
        raise MalformedRecord(row.event_id, _short_reason(e)) from e


def _short_reason(error: Exception) -> str:
    if isinstance(error, ValidationError):
        first = error.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        return f"{location}: {first['msg']}"
    return str(error)


def _decode(row: EventRecordDB, link: Optional[ChainLinkDB]) -> EventRecord:
    return EventRecord(
        event_id=row.event_id,
        timestamp=row.timestamp,
        device_timestamp=row.device_timestamp,
        time_source=row.time_source,
        temperature=row.temperature,
        event_type=row.event_type,
        trigger_payload=json.loads(row.trigger_payload or '{}'),
        artifact_reference=row.artifact_reference,
        artifact_encoding=row.artifact_encoding,
        artifact_hash=row.artifact_hash,
        previous_hash=row.previous_hash,
        signature=row.signature,
        signature_metadata=SignatureMetadata(
            algorithm=row.signature_algorithm,
            key_id=row.signature_key_id,
            trust=row.signature_trust,
        ),
        verified=bool(row.verified),
        chain_position=link.position if link else None,
        current_hash=link.current_hash if link else None,
    )
