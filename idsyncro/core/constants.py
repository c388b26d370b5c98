"""
Identifier and record constants.
"""

# Canonical record schema version, stamped into every fingerprinted payload
SCHEMA_VERSION = 1

# Counter-based employee/intern codes: PREFIX-YY-TYPE-NNNN
EMPLOYEE_TYPE_CODES = {
    "employee": "EMP",
    "intern": "INT",
}
COUNTER_WIDTH = 4
COUNTER_MAX = 9999

# Certificate codes: CERT-TYPE-YY-########-AAAA
CERTIFICATE_PREFIX = "CERT"
CERTIFICATE_NUMBER_MIN = 10_000_000
CERTIFICATE_NUMBER_MAX = 99_999_999  # exclusive
CERTIFICATE_DEFAULT_TYPE = "Internship"

# Offer letter numbers: OL-YYYY-NNNNNNRRR
OFFER_LETTER_PREFIX = "OL"
OFFER_DEFAULT_TYPE = "Full-time"

# Artifact kinds sharing the staging store
ARTIFACT_CERTIFICATE = "certificate"
ARTIFACT_OFFER_LETTER = "offer_letter"

# Schema directive auto rules that resolve to the reconciliation date
AUTO_DATE_RULES = ("today", "current_date")
