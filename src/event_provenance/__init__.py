# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Event Provenance

Tamper-evident provenance for camera events: each trigger is bound to its
captured artifact and timestamp, signed, and appended to a hash chain.
"""

__version__ = "0.1.0"

from .exceptions import (
    ProvenanceError,
    SignerUnavailable,
    StoreTimeout,
    DuplicateEvent,
    NotFound,
    ChainAppendFailure,
    MalformedRecord,
    StoreError,
)

from .crypto.signers import (
    Trust,
    SignResult,
    Signer,
    SoftwareSigner,
    HardwareSigner,
    SecureElement,
    FallbackSigner,
    create_signer,
)

from .database import Database

from .storage import ChainStore, EventStore

from .collaborators import (
    Artifact,
    Clock,
    EventType,
    SimulatedCapture,
    TimeReading,
    Trigger,
)

from .provenance import ProvenanceEngine

from .camera import ProvenanceCamera, build_camera

__all__ = [
    # Version
    '__version__',

    # Errors
    'ProvenanceError',
    'SignerUnavailable',
    'StoreTimeout',
    'DuplicateEvent',
    'NotFound',
    'ChainAppendFailure',
    'MalformedRecord',
    'StoreError',

    # Signing
    'Trust',
    'SignResult',
    'Signer',
    'SoftwareSigner',
    'HardwareSigner',
    'SecureElement',
    'FallbackSigner',
    'create_signer',

    # Storage
    'Database',
    'ChainStore',
    'EventStore',

    # Collaborators
    'Artifact',
    'Clock',
    'EventType',
    'SimulatedCapture',
    'TimeReading',
    'Trigger',

    # Engine and application
    'ProvenanceEngine',
    'ProvenanceCamera',
    'build_camera',
]
