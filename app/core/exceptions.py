# app/core/exceptions.py

from typing import Dict, Optional


class CertificateError(Exception):
    """Base class for every certificate subsystem error."""


class ValidationError(CertificateError):
    """
    Input rejected before anything was written.
    `errors` maps a field path (e.g. "metadata.score") to a readable message.
    """

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


class CertificateNotFound(CertificateError):
    pass


class DuplicateIdentifier(CertificateError):
    """A certificate_id or verification_code collided with an existing row."""


class PersistenceExhausted(CertificateError):
    """Issuance kept colliding until the retry budget ran out."""

    def __init__(self, attempts: int):
        super().__init__(f"Could not persist certificate after {attempts} attempts")
        self.attempts = attempts


class ImmutableField(CertificateError):
    def __init__(self, field: str):
        super().__init__(f"'{field}' cannot be changed once a certificate is issued")
        self.field = field


class Unauthorized(CertificateError):
    pass
