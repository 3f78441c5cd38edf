# app/services/identifier_service.py

import random
import re
import string
from typing import Optional, Tuple

from app.core.clock import Clock, utcnow
from app.core.config import settings

ALPHABET = string.digits + string.ascii_uppercase

# Never produced by the generator: stands in for malformed public input
UNMATCHABLE_TOKEN = "-"

_TOKEN_CHARS = re.compile(r"[0-9A-Z-]+")


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("base36 encoding needs a non-negative integer")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(ALPHABET[rem])
    return "".join(reversed(digits))


def normalize_token(token: Optional[str]) -> str:
    """
    Trims and upper-cases a public certificate id or verification code.
    Anything outside [0-9A-Z-] (NUL bytes, unicode, punctuation) becomes
    UNMATCHABLE_TOKEN so the caller still runs its lookup and misses.
    """
    value = (token or "").strip().upper()
    if not _TOKEN_CHARS.fullmatch(value):
        return UNMATCHABLE_TOKEN
    return value

class IdentifierGenerator:
    """
    Produces the two public tokens of a certificate.

    certificate_id     TC-<base36 epoch millis>-<5 random chars>   e.g. TC-MGX3K2Q1-7HZ2A
    verification_code  8 random chars                              e.g. 4KQ9ZT1M

    Both draw from the same entropy source but in separate calls, so one token
    says nothing about the other. Uniqueness is enforced by the store, not here.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Clock = utcnow,
        prefix: str = settings.CERTIFICATE_ID_PREFIX,
        suffix_length: int = settings.CERTIFICATE_SUFFIX_LENGTH,
        code_length: int = settings.VERIFICATION_CODE_LENGTH,
    ):
        self.rng = rng or random.SystemRandom()
        self.clock = clock
        self.prefix = prefix.upper()
        self.suffix_length = suffix_length
        self.code_length = code_length

        self._id_pattern = re.compile(
            rf"^{re.escape(self.prefix)}-[0-9A-Z]+-[0-9A-Z]{{{suffix_length}}}$"
        )
        self._code_pattern = re.compile(rf"^[0-9A-Z]{{{code_length}}}$")

    def _random_chars(self, k: int) -> str:
        return "".join(self.rng.choices(ALPHABET, k=k))

    def generate_certificate_id(self) -> str:
        millis = int(self.clock().timestamp() * 1000)
        return f"{self.prefix}-{to_base36(millis)}-{self._random_chars(self.suffix_length)}".upper()

    def generate_verification_code(self) -> str:
        return self._random_chars(self.code_length)

    def generate_pair(self) -> Tuple[str, str]:
        return self.generate_certificate_id(), self.generate_verification_code()

    def is_certificate_id(self, value: str) -> bool:
        return bool(value) and bool(self._id_pattern.match(value))

    def is_verification_code(self, value: str) -> bool:
        return bool(value) and bool(self._code_pattern.match(value))
