# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Pluggable signers for provenance payloads.

Two variants share one contract: HardwareSigner (key held by a secure
element) and SoftwareSigner (key held in a PEM file, or ephemeral).
FallbackSigner composes them so that signing degrades from hardware to
software instead of failing, and verification dispatches on the trust tag
stored with each signature.

Software keys are ephemeral unless a key path is configured. An ephemeral
key cannot verify signatures made before the process restarted.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from cryptography.hazmat.primitives.asymmetric import ec

from .signing import (
    ALGORITHM_ID,
    generate_private_key,
    load_private_key_file,
    public_key_fingerprint,
    save_private_key_file,
    sign_data,
    verify_signature,
)
from ..exceptions import SignerUnavailable

logger = logging.getLogger(__name__)


class Trust(str, Enum):
    """Which verification routine and confidence level apply."""
    HARDWARE = "hardware"
    SOFTWARE = "software"
    ABSENT = "absent"


@dataclass
class SignResult:
    """Signature plus the metadata needed to verify it later."""
    signature: bytes
    algorithm: str
    key_id: str
    trust: Trust

    @property
    def signature_hex(self) -> str:
        return self.signature.hex()

    @classmethod
    def from_stored(
        cls,
        signature_hex: str,
        algorithm: str,
        key_id: str,
        trust: str,
    ) -> "SignResult":
        """
        Rebuild a SignResult from persisted fields.

        Raises:
            ValueError: If signature is not hex or trust tag is unknown
        """
        return cls(
            signature=bytes.fromhex(signature_hex),
            algorithm=algorithm,
            key_id=key_id,
            trust=Trust(trust),
        )


class Signer(ABC):
    """Sign bytes / verify signature contract."""

    trust: Trust

    @abstractmethod
    def sign(self, data: bytes) -> SignResult:
        """
        Sign data.

        Raises:
            SignerUnavailable: If no signature could be produced
        """
        pass

    @abstractmethod
    def verify(self, data: bytes, result: SignResult) -> bool:
        """Verify a signature produced by this signer."""
        pass

    def _accepts(self, result: SignResult) -> bool:
        if result.trust != self.trust:
            logger.warning(
                f"Rejecting {result.trust.value} signature in {self.trust.value} verifier"
            )
            return False
        if result.algorithm != ALGORITHM_ID:
            logger.warning(f"Unsupported signature algorithm: {result.algorithm}")
            return False
        return True


class SoftwareSigner(Signer):
    """ECDSA P-256 signer with a key held in process memory."""

    trust = Trust.SOFTWARE

    def __init__(self, private_key: ec.EllipticCurvePrivateKey, persisted: bool = False):
        """
        Args:
            private_key: Signing key
            persisted: Whether the key survives a restart
        """
        self._private_key = private_key
        self._public_key = private_key.public_key()
        self.persisted = persisted
        self.key_id = f"sw:{public_key_fingerprint(self._public_key)}"

    @classmethod
    def generate(cls) -> "SoftwareSigner":
        """Create signer with an ephemeral key."""
        logger.warning("Using ephemeral software signing key (not persisted)")
        return cls(generate_private_key(), persisted=False)

    @classmethod
    def load_or_generate(cls, key_path: Optional[Path]) -> "SoftwareSigner":
        """
        Load the key from key_path, creating it on first use.

        Args:
            key_path: PEM file location; None gives an ephemeral key
        """
        if key_path is None:
            return cls.generate()

        key_path = Path(key_path)
        if key_path.exists():
            logger.info(f"Loading software signing key from {key_path}")
            return cls(load_private_key_file(key_path), persisted=True)

        logger.warning(f"No signing key at {key_path}, generating new key")
        private_key = generate_private_key()
        save_private_key_file(private_key, key_path)
        logger.info(f"Saved new software signing key to {key_path}")
        return cls(private_key, persisted=True)

    @property
    def public_key(self) -> ec.EllipticCurvePublicKey:
        return self._public_key

    def sign(self, data: bytes) -> SignResult:
        try:
            signature = sign_data(data, self._private_key)
        except Exception as e:
            raise SignerUnavailable(f"Software signing failed: {e}") from e

        return SignResult(
            signature=signature,
            algorithm=ALGORITHM_ID,
            key_id=self.key_id,
            trust=self.trust,
        )

    def verify(self, data: bytes, result: SignResult) -> bool:
        if not self._accepts(result):
            return False
        if result.key_id != self.key_id:
            logger.warning(
                f"Signature key {result.key_id} does not match loaded key {self.key_id}"
            )
            return False
        return verify_signature(data, result.signature, self._public_key)


class SecureElement(ABC):
    """
    Narrow interface to a signing device.

    The device protocol (I2C, TPM tooling, ...) lives behind this interface.
    Implementations raise any exception when the device is unreachable.
    """

    slot: str = "slot0"

    @abstractmethod
    def sign(self, data: bytes) -> bytes:
        """Return a DER ECDSA P-256/SHA-256 signature made inside the device."""
        pass

    @abstractmethod
    def public_key(self) -> ec.EllipticCurvePublicKey:
        """Return the public half of the device key."""
        pass


class HardwareSigner(Signer):
    """
    Signer whose private key never leaves a secure element.

    Every device call runs in a daemon thread and is abandoned after
    timeout seconds. While an abandoned call is still running the device
    counts as busy and further calls fail immediately.
    """

    trust = Trust.HARDWARE

    def __init__(self, element: SecureElement, timeout: float = 2.0):
        self.element = element
        self.timeout = timeout
        self._public_key: Optional[ec.EllipticCurvePublicKey] = None
        self._hung: Optional[threading.Thread] = None
        self._hung_lock = threading.Lock()

    def _device_call(self, fn: Callable[..., Any], *args: Any) -> Any:
        """
        Run one secure element call with a time bound.

        Raises:
            SignerUnavailable: If the device errored, timed out or is still busy
        """
        with self._hung_lock:
            if self._hung is not None and self._hung.is_alive():
                raise SignerUnavailable("Secure element busy with a timed-out call")
            self._hung = None

        outcome: dict = {}

        def run() -> None:
            try:
                outcome["value"] = fn(*args)
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=run, daemon=True, name="SecureElementCall")
        worker.start()
        worker.join(self.timeout)

        if worker.is_alive():
            with self._hung_lock:
                self._hung = worker
            raise SignerUnavailable(f"Secure element timed out after {self.timeout}s")
        if "error" in outcome:
            raise SignerUnavailable(f"Secure element call failed: {outcome['error']}") from outcome["error"]
        return outcome["value"]

    def _device_public_key(self) -> ec.EllipticCurvePublicKey:
        if self._public_key is None:
            self._public_key = self._device_call(self.element.public_key)
        return self._public_key

    @property
    def key_id(self) -> str:
        """
        Raises:
            SignerUnavailable: If the device public key cannot be read
        """
        return f"hw:{self.element.slot}:{public_key_fingerprint(self._device_public_key())}"

    def sign(self, data: bytes) -> SignResult:
        key_id = self.key_id
        signature = self._device_call(self.element.sign, data)

        return SignResult(
            signature=signature,
            algorithm=ALGORITHM_ID,
            key_id=key_id,
            trust=self.trust,
        )

    def verify(self, data: bytes, result: SignResult) -> bool:
        if not self._accepts(result):
            return False
        try:
            key_id = self.key_id
        except SignerUnavailable as e:
            logger.error(f"Secure element public key unavailable: {e}")
            return False
        if result.key_id != key_id:
            logger.warning(f"Signature key {result.key_id} does not match device key")
            return False
        return verify_signature(data, result.signature, self._public_key)


class FallbackSigner(Signer):
    """
    Hardware-first signer with software fallback.

    sign() only raises SignerUnavailable when every variant failed. The
    hardware attempt is bounded by the HardwareSigner timeout; the software
    attempt runs in the calling thread, so a hung device never delays it
    beyond that bound.
    """

    def __init__(
        self,
        software: SoftwareSigner,
        hardware: Optional[HardwareSigner] = None,
    ):
        self.software = software
        self.hardware = hardware

    @property
    def trust(self) -> Trust:
        return Trust.HARDWARE if self.hardware is not None else Trust.SOFTWARE

    def sign(self, data: bytes) -> SignResult:
        if self.hardware is not None:
            try:
                return self.hardware.sign(data)
            except SignerUnavailable as e:
                logger.warning(f"Hardware signing unavailable, falling back to software: {e}")

        return self.software.sign(data)

    def verify(self, data: bytes, result: SignResult) -> bool:
        if result.trust == Trust.HARDWARE:
            if self.hardware is None:
                logger.warning("Hardware signature present but no secure element configured")
                return False
            return self.hardware.verify(data, result)
        if result.trust == Trust.SOFTWARE:
            return self.software.verify(data, result)
        return False


def create_signer(
    key_path: Optional[Path] = None,
    element: Optional[SecureElement] = None,
    timeout: float = 2.0,
) -> FallbackSigner:
    """
    Factory for the signer used by the provenance engine.

    Args:
        key_path: Software key PEM path (None = ephemeral)
        element: Secure element to try first (None = software only)
        timeout: Seconds allowed per secure element call

    Returns:
        FallbackSigner instance
    """
    software = SoftwareSigner.load_or_generate(key_path)
    hardware = HardwareSigner(element, timeout=timeout) if element is not None else None
    return FallbackSigner(software, hardware=hardware)
