"""Signing primitives and signer variants."""
