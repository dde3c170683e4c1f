# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Hashing and canonical serialization for provenance records.

The signable payload and the link hash must be reproducible byte-for-byte
from stored data, so every hash in the chain goes through these functions.
"""

import hashlib
import json
from typing import Any, Optional

# Fields covered by the signature and the link hash, nothing else.
SIGNABLE_FIELDS = (
    "event_id",
    "timestamp",
    "device_timestamp",
    "event_type",
    "trigger_payload",
    "artifact_hash",
    "previous_hash",
)

UNSIGNED_MARKER = b"unsigned"


def sha256_hex(data: bytes) -> str:
    """
    Compute SHA-256 hash and return as hex string.

    Example:
        >>> len(sha256_hex(b"frame bytes"))
        64
    """
    return hashlib.sha256(data).hexdigest()


def canonical_json(obj: Any) -> bytes:
    """
    Serialize to canonical JSON bytes.

    Keys are sorted at every nesting level and separators carry no
    whitespace, so equal values always produce equal bytes.
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(',', ':'),
        ensure_ascii=False,
    ).encode('utf-8')


def build_signable_payload(
    event_id: str,
    timestamp: str,
    device_timestamp: str,
    event_type: str,
    trigger_payload: dict,
    artifact_hash: str,
    previous_hash: Optional[str],
) -> bytes:
    """
    Assemble the canonical byte sequence that is signed and chained.

    Args:
        event_id: Event identifier
        timestamp: Host capture instant (ISO-8601, UTC)
        device_timestamp: Time source reading (ISO-8601)
        event_type: Event type tag
        trigger_payload: Opaque trigger data (JSON-compatible)
        artifact_hash: SHA-256 of the artifact bytes
        previous_hash: Current chain tip, or None at genesis

    Returns:
        UTF-8 canonical JSON of exactly the signable fields
    """
    payload = {
        "event_id": event_id,
        "timestamp": timestamp,
        "device_timestamp": device_timestamp,
        "event_type": event_type,
        "trigger_payload": trigger_payload,
        "artifact_hash": artifact_hash,
        "previous_hash": previous_hash,
    }
    return canonical_json(payload)


def compute_link_hash(payload: bytes, signature_hex: Optional[str]) -> str:
    """
    Compute the chain link hash over payload and signature.

    Args:
        payload: Signable payload bytes
        signature_hex: Hex signature, or None when the event is unsigned

    Returns:
        SHA-256 hash (64 hex chars)
    """
    marker = signature_hex.encode('ascii') if signature_hex else UNSIGNED_MARKER
    return sha256_hex(payload + marker)
