# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
ECDSA P-256 primitives for signing provenance payloads.

Key material is handled as PEM (PKCS8 for private keys, SubjectPublicKeyInfo
for public keys). Signatures are DER-encoded.
"""

import hashlib
from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

ALGORITHM_ID = "ECDSA-SHA256"


def generate_private_key() -> ec.EllipticCurvePrivateKey:
    """Generate new ECDSA P-256 private key."""
    return ec.generate_private_key(ec.SECP256R1())


def load_private_key_from_pem(pem_data: str | bytes) -> ec.EllipticCurvePrivateKey:
    """
    Load ECDSA P-256 private key from PEM format.

    Args:
        pem_data: PEM-encoded private key (string or bytes)

    Returns:
        ECDSA P-256 private key

    Raises:
        ValueError: If PEM data is invalid or not ECDSA
    """
    if isinstance(pem_data, str):
        pem_data = pem_data.encode('utf-8')

    private_key = serialization.load_pem_private_key(
        pem_data,
        password=None
    )

    if not isinstance(private_key, ec.EllipticCurvePrivateKey):
        raise ValueError("Private key is not ECDSA")

    return private_key


def load_private_key_file(path: Path) -> ec.EllipticCurvePrivateKey:
    """Load private key from PEM file."""
    with open(path, "rb") as f:
        return load_private_key_from_pem(f.read())


def save_private_key_file(private_key: ec.EllipticCurvePrivateKey, path: Path) -> None:
    """Save private key to PEM file (unencrypted PKCS8)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    with open(path, "wb") as f:
        f.write(pem)


def public_key_fingerprint(public_key: ec.EllipticCurvePublicKey) -> str:
    """
    Short fingerprint of a public key.

    Returns:
        First 16 hex chars of SHA-256 over the DER SubjectPublicKeyInfo
    """
    der = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return hashlib.sha256(der).hexdigest()[:16]


def sign_data(
    data: bytes,
    private_key: ec.EllipticCurvePrivateKey
) -> bytes:
    """
    Sign data with ECDSA P-256 + SHA-256.

    Example:
        >>> private_key = generate_private_key()
        >>> signature = sign_data(b"test data", private_key)
        >>> len(signature) > 0
        True
    """
    return private_key.sign(
        data,
        ec.ECDSA(hashes.SHA256())
    )


def verify_signature(
    data: bytes,
    signature: bytes,
    public_key: ec.EllipticCurvePublicKey
) -> bool:
    """
    Verify ECDSA signature.

    Returns:
        True if signature is valid, False otherwise

    Example:
        >>> private_key = generate_private_key()
        >>> signature = sign_data(b"test data", private_key)
        >>> verify_signature(b"test data", signature, private_key.public_key())
        True
        >>> verify_signature(b"wrong data", signature, private_key.public_key())
        False
    """
    try:
        public_key.verify(
            signature,
            data,
            ec.ECDSA(hashes.SHA256())
        )
        return True
    except InvalidSignature:
        return False
