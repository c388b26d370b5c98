"""
Tests for placeholder and RSA fingerprint signatures.
"""

import pytest

from idsyncro.utils.hashing import canonicalize, fingerprint
from idsyncro.utils.signing import (
    HASH_ALGORITHM,
    RSA_ALGORITHM,
    HashSigner,
    RsaSigner,
    generate_key_pair,
    hash_signature,
    verify_with_algorithm,
)


@pytest.fixture(scope="module")
def key_pair():
    return generate_key_pair()


@pytest.fixture
def digest():
    return fingerprint(canonicalize({"name": "Asha", "certificate_type": "Internship"}))


def test_hash_signer_round_trip(digest):
    signer = HashSigner()
    signature = signer.sign(digest)
    assert signature == hash_signature(digest)
    assert signer.verify(digest, signature)
    assert not signer.verify(digest, "0" * 64)


def test_rsa_signer_round_trip(key_pair, digest):
    private_pem, public_pem = key_pair
    signer = RsaSigner(public_pem, private_pem)
    signature = signer.sign(digest)
    assert signer.verify(digest, signature)


def test_rsa_signature_rejects_other_fingerprint(key_pair, digest):
    private_pem, public_pem = key_pair
    signer = RsaSigner(public_pem, private_pem)
    signature = signer.sign(digest)
    assert not signer.verify(fingerprint("{}"), signature)


def test_rsa_verify_returns_false_on_malformed_signature(key_pair, digest):
    _, public_pem = key_pair
    assert not RsaSigner(public_pem).verify(digest, "not-base64!!")


def test_rsa_verify_only_signer_cannot_sign(key_pair, digest):
    _, public_pem = key_pair
    with pytest.raises(RuntimeError):
        RsaSigner(public_pem).sign(digest)


def test_verify_with_algorithm_uses_recorded_algorithm(key_pair, digest):
    private_pem, public_pem = key_pair
    rsa_signer = RsaSigner(public_pem, private_pem)

    assert verify_with_algorithm(HASH_ALGORITHM, digest, hash_signature(digest), rsa_signer)
    assert verify_with_algorithm(RSA_ALGORITHM, digest, rsa_signer.sign(digest), rsa_signer)
    # RSA records cannot be checked without a public key
    assert not verify_with_algorithm(RSA_ALGORITHM, digest, rsa_signer.sign(digest), HashSigner())


def test_rsa_signature_rejects_other_public_key(key_pair, digest):
    private_pem, public_pem = key_pair
    _, other_public_pem = generate_key_pair()
    signature = RsaSigner(public_pem, private_pem).sign(digest)

    assert RsaSigner(public_pem).verify(digest, signature)
    assert not RsaSigner(other_public_pem).verify(digest, signature)
