"""Schema exports."""

from .schemas import (
    CaptureRequest,
    ChainIssue,
    ChainLink,
    ChainStats,
    ChainStatus,
    ChainVerification,
    EventRecord,
    SignatureMetadata,
    SystemStatus,
    VerificationResult,
)

__all__ = [
    "CaptureRequest",
    "ChainIssue",
    "ChainLink",
    "ChainStats",
    "ChainStatus",
    "ChainVerification",
    "EventRecord",
    "SignatureMetadata",
    "SystemStatus",
    "VerificationResult",
]
