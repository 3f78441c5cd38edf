from enum import Enum

class CertificateState(str, Enum):
    Active = "Active"
    Inactive = "Inactive"


class Grade(str, Enum):
    A_PLUS = "A+"
    A = "A"
    A_MINUS = "A-"
    B_PLUS = "B+"
    B = "B"
    B_MINUS = "B-"
    C_PLUS = "C+"
    C = "C"
    C_MINUS = "C-"
    Pass = "Pass"
    Fail = "Fail"


class AuditAction(str, Enum):
    Issued = "CERTIFICATE_ISSUED"
    Updated = "CERTIFICATE_UPDATED"
    Revoked = "CERTIFICATE_REVOKED"
    Downloaded = "CERTIFICATE_DOWNLOADED"
