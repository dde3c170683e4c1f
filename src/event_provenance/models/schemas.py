# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Pydantic schemas for records, verification results and chain health."""

import re
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, computed_field, field_validator

TrustTag = Literal["hardware", "software", "absent"]
TimeSource = Literal["device", "host"]
IssueKind = Literal["broken_link", "position_gap", "hash_mismatch", "missing_event", "malformed_record"]


class SignatureMetadata(BaseModel):
    """How a signature was made and which routine verifies it."""

    algorithm: Optional[str] = None
    key_id: Optional[str] = None
    trust: TrustTag = "absent"


class EventRecord(BaseModel):
    """Finalized event record, joined with its chain link when one exists."""

    event_id: str
    timestamp: str = Field(..., description="Host capture instant (ISO-8601, UTC)")
    device_timestamp: str = Field(..., description="Time source reading (ISO-8601)")
    time_source: TimeSource = "host"
    temperature: Optional[float] = None
    event_type: str
    trigger_payload: dict[str, Any] = Field(default_factory=dict)
    artifact_reference: Optional[str] = None
    artifact_encoding: Optional[str] = None
    artifact_hash: str
    previous_hash: Optional[str] = None
    signature: Optional[str] = Field(None, description="Hex DER signature")
    signature_metadata: SignatureMetadata = Field(default_factory=SignatureMetadata)
    verified: bool = False

    # From the chain link; None for orphaned records
    chain_position: Optional[int] = None
    current_hash: Optional[str] = None

    @computed_field
    @property
    def signed(self) -> bool:
        return self.signature is not None


class ChainLink(BaseModel):
    """One hash-chain entry."""

    event_id: str
    previous_hash: Optional[str] = None
    current_hash: str
    position: int


class VerificationResult(BaseModel):
    """Outcome of re-verifying one event's signature."""

    event_id: str
    valid: bool
    reason: Optional[str] = None  # unsigned, signature_mismatch, malformed_signature, malformed_record
    signature_metadata: SignatureMetadata = Field(default_factory=SignatureMetadata)


class ChainIssue(BaseModel):
    """A single integrity violation found while walking the chain."""

    position: int
    issue: IssueKind
    expected: Optional[str] = None
    actual: Optional[str] = None


class ChainVerification(BaseModel):
    """Result of a whole-chain walk."""

    valid: bool
    total_links: int
    issues: List[ChainIssue] = Field(default_factory=list)


class ChainStats(BaseModel):
    """Event store counters."""

    total: int = 0
    signed: int = 0
    verified: int = 0
    orphaned: int = 0


class ChainStatus(BaseModel):
    """Chain health summary for display."""

    chain_valid: bool
    total_events: int
    signed_events: int
    verified_events: int
    orphaned_events: int
    signature_rate: float = Field(..., description="Percent of events signed")
    issues: List[ChainIssue] = Field(default_factory=list)


class SystemStatus(BaseModel):
    """Component status for the status endpoint."""

    device_id: str
    signer_trust: TrustTag
    signer_key_id: str
    signer_key_persisted: bool
    clock_source: TimeSource
    cursor: Optional[str] = None


class CaptureRequest(BaseModel):
    """Trigger submitted through the API."""

    event_type: str = Field("manual_capture", min_length=1, max_length=64)
    trigger_payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("event_type")
    @classmethod
    def validate_event_type(cls, v: str) -> str:
        """Event types are lowercase snake_case tags."""
        if not re.match(r'^[a-z][a-z0-9_]*$', v):
            raise ValueError("event_type must be lowercase snake_case")
        return v
