# SQLModel database models

from idsyncro.models.employee import Employee
from idsyncro.models.certificate import Certificate, CertificateBatch
from idsyncro.models.offer_letter import OfferLetter, OfferLetterBatch
from idsyncro.models.staging import ImportStagingRow
from idsyncro.models.counter import SequenceCounter
from idsyncro.models.audit import AuditLog

__all__ = [
    "Employee",
    "Certificate",
    "CertificateBatch",
    "OfferLetter",
    "OfferLetterBatch",
    "ImportStagingRow",
    "SequenceCounter",
    "AuditLog",
]
