"""
Hashing utilities: canonical record encoding and tamper-evident fingerprints.
"""

import hashlib
import json
import math
from datetime import date, datetime
from typing import Any, Dict, Mapping

from idsyncro.core.errors import IntegrityError


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    # Blank spreadsheet cells come back as NaN
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


def _normalize(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def canonicalize(fields: Mapping[str, Any]) -> str:
    """
    Encode a record's field map into its canonical string.

    Keys are sorted, empty values (None, blank strings, NaN) are dropped and
    strings are trimmed, so two mappings that agree on their non-empty trimmed
    values always produce byte-identical output.

    Args:
        fields: Field name to scalar value

    Returns:
        Compact JSON object string
    """
    canonical: Dict[str, Any] = {}
    for key in sorted(fields):
        value = fields[key]
        if _is_empty(value):
            continue
        canonical[key] = _normalize(value)

    return json.dumps(
        canonical,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str
    )


def fingerprint(canonical: str) -> str:
    """
    SHA-256 fingerprint of a canonical record.

    Returns:
        64-character lowercase hexadecimal digest
    """
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def verify_fingerprint(canonical: str, expected: str) -> None:
    """
    Re-derive a stored record's canonical form and digest.

    Raises:
        IntegrityError: if the stored form is no longer canonical or its
            digest differs from the one recorded at issuance
    """
    try:
        fields = json.loads(canonical)
    except (TypeError, ValueError) as e:
        raise IntegrityError(f"Stored record is not valid canonical data: {e}")
    if not isinstance(fields, dict):
        raise IntegrityError("Stored record is not a field map")

    rederived = canonicalize(fields)

    if rederived != canonical:
        raise IntegrityError("Stored record is not in canonical form")

    if fingerprint(rederived) != expected:
        raise IntegrityError("Fingerprint mismatch: record was modified after issuance")


def hash_payload(payload: Any) -> str:
    """
    Generate SHA-256 hash of a payload for the audit trail and import batches.

    Args:
        payload: JSON-serialisable value to hash

    Returns:
        Hexadecimal SHA-256 hash string
    """
    # Sort keys for consistent hashing
    payload_str = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(payload_str.encode()).hexdigest()
