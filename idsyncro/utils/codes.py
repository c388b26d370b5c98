"""
Pure identifier generators and parsers.

Counter-based employee codes are formatted here but numbered by the sequence
allocator; certificate and offer letter codes are random and rely on a
uniqueness constraint plus retry at the persistence layer.
"""

import re
import secrets
from datetime import datetime
from typing import Optional, Protocol, Tuple

from idsyncro.core.constants import (
    CERTIFICATE_NUMBER_MAX,
    CERTIFICATE_NUMBER_MIN,
    CERTIFICATE_PREFIX,
    COUNTER_WIDTH,
    EMPLOYEE_TYPE_CODES,
    OFFER_LETTER_PREFIX,
)
from idsyncro.core.errors import ValidationError
from idsyncro.utils.time import utc_now, year_suffix


class RandomSource(Protocol):
    def randbelow(self, n: int) -> int: ...

    def token_bytes(self, n: int) -> bytes: ...


class SystemRandomSource:
    """CSPRNG-backed random source."""

    def randbelow(self, n: int) -> int:
        return secrets.randbelow(n)

    def token_bytes(self, n: int) -> bytes:
        return secrets.token_bytes(n)


_system_random = SystemRandomSource()

EMPLOYEE_CODE_RE = re.compile(r"^(?P<prefix>[A-Z0-9]+)-(?P<year>\d{2})-(?P<type>EMP|INT)-(?P<number>\d{4})$")
CERTIFICATE_CODE_RE = re.compile(r"^CERT-(EMP|INT)-\d{2}-\d{8}-[0-9A-F]{4}$")
OFFER_LETTER_NUMBER_RE = re.compile(r"^OL-\d{4}-\d{9}$")


def employee_type_code(employee_type: str) -> str:
    """Map an employee type to its code segment (EMP/INT)."""
    try:
        return EMPLOYEE_TYPE_CODES[(employee_type or "").strip().lower()]
    except KeyError:
        raise ValidationError(
            f"Unknown employee type '{employee_type}'; expected one of {sorted(EMPLOYEE_TYPE_CODES)}"
        )


def format_employee_code(prefix: str, year: str, employee_type: str, number: int) -> str:
    """Format e.g. SWT-25-EMP-0042."""
    return f"{prefix}-{year}-{employee_type_code(employee_type)}-{number:0{COUNTER_WIDTH}d}"


def parse_employee_code(code: str) -> Optional[Tuple[str, str, str, int]]:
    """Split an employee code into (prefix, year, type code, number), or None."""
    match = EMPLOYEE_CODE_RE.match(code or "")
    if not match:
        return None
    return match["prefix"], match["year"], match["type"], int(match["number"])


def certificate_type_code(certificate_type: Optional[str]) -> str:
    return "EMP" if (certificate_type or "").strip().lower() == "employee" else "INT"


def generate_certificate_code(
    certificate_type: Optional[str],
    now: Optional[datetime] = None,
    rng: Optional[RandomSource] = None
) -> str:
    """
    Generate a certificate code: CERT-{EMP|INT}-{YY}-{8 digits}-{4 hex chars}.

    Args:
        certificate_type: "employee" yields EMP, anything else INT
        now: Clock override
        rng: Random source override

    Returns:
        Certificate code string
    """
    rng = rng or _system_random
    number = CERTIFICATE_NUMBER_MIN + rng.randbelow(CERTIFICATE_NUMBER_MAX - CERTIFICATE_NUMBER_MIN)
    salt = rng.token_bytes(2).hex().upper()[:4]
    return (
        f"{CERTIFICATE_PREFIX}-{certificate_type_code(certificate_type)}-"
        f"{year_suffix(now)}-{number}-{salt}"
    )


def generate_offer_letter_number(
    now: Optional[datetime] = None,
    rng: Optional[RandomSource] = None
) -> str:
    """
    Generate an offer letter number: OL-{YYYY}-{6 timestamp digits}{3 random digits}.
    """
    rng = rng or _system_random
    now = now or utc_now()
    millis = int(now.timestamp() * 1000)
    return f"{OFFER_LETTER_PREFIX}-{now.year}-{millis % 1_000_000:06d}{rng.randbelow(1000):03d}"
