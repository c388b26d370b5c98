"""
Fingerprint signing.

Two signers share one shape (``algorithm``, ``sign``, ``verify``):

- ``HashSigner`` reproduces the shipped behaviour, where the "signature" is a
  second SHA-256 over the fingerprint. Anyone holding the fingerprint can
  recompute it, so it offers no non-repudiation.
- ``RsaSigner`` produces a real RSA-SHA256 signature verifiable with the
  public key alone.
"""

import base64
import binascii
import hashlib
import hmac
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from idsyncro.core.config import get_settings
from idsyncro.core.logging import get_logger

logger = get_logger(__name__)

HASH_ALGORITHM = "sha256-placeholder"
RSA_ALGORITHM = "rsa-sha256"

KeyMaterial = Union[str, bytes]


def _as_bytes(pem: KeyMaterial) -> bytes:
    return pem.encode("utf-8") if isinstance(pem, str) else pem


def generate_key_pair(key_size: int = 2048) -> Tuple[str, str]:
    """
    Generate an RSA key pair for development and tests.

    Returns:
        (private_pem, public_pem) as PKCS#8 and SubjectPublicKeyInfo PEM strings
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem.decode("utf-8"), public_pem.decode("utf-8")


def sign_fingerprint(fingerprint: str, private_key: KeyMaterial) -> str:
    """RSA PKCS#1 v1.5 / SHA-256 signature over the fingerprint, base64-encoded."""
    key = serialization.load_pem_private_key(_as_bytes(private_key), password=None)
    signature = key.sign(fingerprint.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
    return base64.b64encode(signature).decode("ascii")


def verify_signature(fingerprint: str, signature: str, public_key: KeyMaterial) -> bool:
    """
    Check an RSA signature over a fingerprint.

    Returns False on any malformed input, wrong key or tampered signature.
    """
    try:
        key = serialization.load_pem_public_key(_as_bytes(public_key))
        raw = base64.b64decode(signature, validate=True)
        key.verify(raw, fingerprint.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
        return True
    except (InvalidSignature, ValueError, TypeError, binascii.Error, AttributeError):
        return False


def hash_signature(fingerprint: str) -> str:
    """Placeholder signature: SHA-256 hex of the fingerprint."""
    return hashlib.sha256(fingerprint.encode("utf-8")).hexdigest()


class HashSigner:
    """Same-hash placeholder signer (weak, kept for compatibility)."""

    algorithm = HASH_ALGORITHM

    def sign(self, fingerprint: str) -> str:
        return hash_signature(fingerprint)

    def verify(self, fingerprint: str, signature: str) -> bool:
        if not isinstance(signature, str):
            return False
        return hmac.compare_digest(hash_signature(fingerprint), signature)


class RsaSigner:
    """RSA-SHA256 signer over injected PEM key material."""

    algorithm = RSA_ALGORITHM

    def __init__(self, public_key: KeyMaterial, private_key: Optional[KeyMaterial] = None):
        self.public_key = _as_bytes(public_key)
        self.private_key = _as_bytes(private_key) if private_key is not None else None

    def sign(self, fingerprint: str) -> str:
        if self.private_key is None:
            raise RuntimeError("RSA signer has no private key; it can only verify")
        return sign_fingerprint(fingerprint, self.private_key)

    def verify(self, fingerprint: str, signature: str) -> bool:
        return verify_signature(fingerprint, signature, self.public_key)


Signer = Union[HashSigner, RsaSigner]


def verify_with_algorithm(
    algorithm: Optional[str],
    fingerprint: str,
    signature: str,
    signer: Signer
) -> bool:
    """Verify a stored signature with the algorithm recorded at issuance."""
    if algorithm == RSA_ALGORITHM:
        if not isinstance(signer, RsaSigner):
            logger.warning("RSA-signed record but no RSA public key is configured")
            return False
        return signer.verify(fingerprint, signature)
    # Records without an algorithm predate the column and used the placeholder
    return HashSigner().verify(fingerprint, signature)


@lru_cache()
def get_signer() -> Signer:
    """Build the signer selected by SIGNATURE_MODE."""
    settings = get_settings()
    if settings.signature_mode == "rsa":
        if not settings.signing_public_key_path:
            raise RuntimeError("SIGNATURE_MODE=rsa requires SIGNING_PUBLIC_KEY_PATH")
        public_pem = Path(settings.signing_public_key_path).read_bytes()
        private_pem = None
        if settings.signing_private_key_path:
            private_pem = Path(settings.signing_private_key_path).read_bytes()
        logger.info("Using RSA-SHA256 fingerprint signatures")
        return RsaSigner(public_pem, private_pem)

    logger.warning("Using placeholder hash signatures; these provide no non-repudiation")
    return HashSigner()
