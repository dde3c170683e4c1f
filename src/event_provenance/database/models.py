# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""SQLAlchemy ORM models for the provenance ledger."""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CHAR,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)

from .connection import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventRecordDB(Base):
    """
    Full event record: trigger, artifact reference and hash, signature.

    Rows are append-only. The insertion id orders records by write time.
    """

    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), nullable=False, unique=True, index=True)
    timestamp = Column(String(40), nullable=False)  # ISO-8601 UTC, host clock
    device_timestamp = Column(String(40), nullable=False)
    time_source = Column(String(16), nullable=False)  # device | host
    temperature = Column(Float, nullable=True)  # degrees C from the time source
    event_type = Column(String(64), nullable=False, index=True)
    trigger_payload = Column(Text, nullable=False)  # canonical JSON
    artifact_reference = Column(Text, nullable=True)
    artifact_encoding = Column(String(64), nullable=True)
    artifact_hash = Column(CHAR(64), nullable=False)
    previous_hash = Column(CHAR(64), nullable=True)  # cursor at signing time

    # Signature (all null when unsigned)
    signature = Column(Text, nullable=True)  # hex DER
    signature_algorithm = Column(String(32), nullable=True)
    signature_key_id = Column(String(128), nullable=True)
    signature_trust = Column(String(16), nullable=False, default="absent")

    verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (Index("idx_events_created", "created_at"),)


class ChainLinkDB(Base):
    """
    One hash-chain link per event, in strict append order.

    Positions are 1-based and contiguous; both position and event_id are
    unique so two appends can never share a slot.
    """

    __tablename__ = "provenance_chain"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), ForeignKey("events.event_id"), nullable=False, unique=True)
    previous_hash = Column(CHAR(64), nullable=True)  # null = genesis
    current_hash = Column(CHAR(64), nullable=False)
    position = Column(Integer, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (Index("idx_chain_position", "position"),)
