"""HMAC signing for both trust domains."""

from .outbound import OutboundSigner, canonical_outbound_message, compact_json
from .verifier import (
    ISignatureVerifier,
    SignatureVerifier,
    canonical_inbound_message,
    compute_inbound_signature,
)

__all__ = [
    "ISignatureVerifier",
    "SignatureVerifier",
    "OutboundSigner",
    "canonical_inbound_message",
    "canonical_outbound_message",
    "compact_json",
    "compute_inbound_signature",
]
