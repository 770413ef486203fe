"""Deterministic token classifiers.

Each detector is a pure function ``detect(text) -> Match | VETO | None``.
The registry :data:`DETECTORS` is evaluated in order and the first non-``None``
answer wins, so precedence is significant:

* PAN runs before the phone heuristic so a card number is never reported as a
  phone number.
* SSN-shaped tokens with a reserved area/group/serial return :data:`VETO`,
  which stops classification entirely instead of falling through to PHONE or
  ADDRESS.

Patterns use the third-party ``regex`` package.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional, Tuple, Union

import regex as re

from .types import DetectionKind

if TYPE_CHECKING:  # pragma: no cover
    from .patterns import PatternEngine


@dataclass(frozen=True)
class Match:
    """Classification of a single token."""

    kind: DetectionKind
    reason: str
    confidence: float


class _Veto:
    def __repr__(self) -> str:
        return "VETO"


VETO = _Veto()

DetectorResult = Union[Match, _Veto, None]
Detector = Callable[[str], DetectorResult]

# Characters OCR commonly glues to the start or end of a word.
_TRIM_CHARS = ",;:\"'()[]<>."

PAN_CHARS_RE = re.compile(r"^\d[\d -]*\d$")
IBAN_RE = re.compile(r"^[A-Z]{2}\d{2}[A-Z0-9]{11,30}$")
SSN_RE = re.compile(r"^(\d{3})-(\d{2})-(\d{4})$")
PASSPORT_RE = re.compile(r"^(?:\d{9}|[A-Z]\d{8})$")
JWT_RE = re.compile(r"^[A-Za-z0-9_-]{4,}\.[A-Za-z0-9_-]{4,}\.[A-Za-z0-9_-]{4,}$")
JWT_MIN_LENGTH = 30
AWS_KEY_RE = re.compile(r"^A(?:KIA|SIA)[A-Z0-9]{16}$")
EMAIL_RE = re.compile(r"^[A-Z0-9._%+-]+@[A-Z0-9-]+(?:\.[A-Z0-9-]+)*\.[A-Z]{2,}$", re.I)
PHONE_CHARS_RE = re.compile(r"^\+?[\d\s().-]+$")
DATE_RE = re.compile(r"^(?:\d{4}[-.]\d{2}[-.]\d{2}|\d{1,2}[-.]\d{1,2}[-.]\d{2,4})$")
ZIP_RE = re.compile(r"^\d{5}(?:-\d{4})?$")
HOUSE_NUMBER_RE = re.compile(r"^\d{1,5}[A-Z]$")
APARTMENT_RE = re.compile(r"^(?:(?:apt|apartment|suite|ste|unit)\.?|#\d+[A-Z]?)$", re.I)
BARE_NUMBER_RE = re.compile(r"^\d{3,4}$")
NAME_RE = re.compile(r"^[A-Z][a-z]+(?:[-'][A-Z][a-z]+)?$")

STREET_SUFFIXES = frozenset(
    {
        "street", "st", "avenue", "ave", "road", "rd", "lane", "ln",
        "boulevard", "blvd", "drive", "dr", "court", "ct", "place", "pl",
        "way", "terrace", "ter", "parkway", "pkwy", "highway", "hwy",
        "circle", "cir", "square", "sq", "trail", "trl",
    }
)

DIRECTIONALS = frozenset(
    {
        "north", "south", "east", "west", "northeast", "northwest",
        "southeast", "southwest", "ne", "nw", "se", "sw",
    }
)

US_STATES = frozenset(
    {
        "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA", "HI",
        "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD", "MA", "MI",
        "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ", "NM", "NY", "NC",
        "ND", "OH", "OK", "OR", "PA", "RI", "SC", "SD", "TN", "TX", "UT",
        "VT", "VA", "WA", "WV", "WI", "WY", "DC",
    }
)

NAME_STOPWORDS = frozenset(
    {
        "the", "and", "for", "with", "this", "that", "from", "have", "will",
        "your", "you", "are", "not", "but", "all", "any", "can", "our",
        "their", "there", "here", "when", "where", "what", "which", "who",
        "why", "how", "yes", "please", "thank", "thanks", "dear", "hello",
        "regards", "sincerely", "best", "date", "page", "name", "address",
        "phone", "email", "total", "amount", "invoice", "account", "number",
        "balance", "payment", "due", "bank", "card", "customer", "client",
        "order", "receipt", "subtotal", "tax", "from", "subject", "note",
        "notes", "description", "quantity", "price", "item", "items", "city",
        "state", "country", "zip", "code", "signature", "statement", "report",
        "summary", "details", "information", "reference", "office", "company",
        "department", "services", "service", "today", "tomorrow", "yesterday",
        "monday", "tuesday", "wednesday", "thursday", "friday", "saturday",
        "sunday", "january", "february", "march", "april", "may", "june",
        "july", "august", "september", "october", "november", "december",
        "mr", "mrs", "ms", "dr", "inc", "ltd", "llc", "corp", "new", "old",
    }
)


def _clean(text: str) -> str:
    return (text or "").strip().strip(_TRIM_CHARS).strip()


def is_luhn_valid(value: str) -> bool:
    """Return True if ``value`` (digits only) passes the Luhn checksum."""
    if not value or not value.isdigit():
        return False
    total = 0
    for i, ch in enumerate(reversed(value)):
        d = ord(ch) - 48
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


def is_valid_iban(value: str) -> bool:
    """Validate an IBAN with the ISO 13616 MOD-97 checksum.

    The first four characters move to the end, letters map to ``A=10`` ...
    ``Z=35`` and the resulting number must leave a remainder of 1 modulo 97.
    """
    cleaned = re.sub(r"\s+", "", value or "").upper()
    if not 15 <= len(cleaned) <= 34 or not IBAN_RE.match(cleaned):
        return False
    rearranged = cleaned[4:] + cleaned[:4]
    remainder = 0
    for ch in rearranged:
        if ch.isdigit():
            digits = ch
        elif "A" <= ch <= "Z":
            digits = str(ord(ch) - 55)
        else:
            return False
        for d in digits:
            remainder = (remainder * 10 + int(d)) % 97
    return remainder == 1


def is_valid_ssn(value: str) -> bool:
    m = SSN_RE.match(value or "")
    if not m:
        return False
    area, group, serial = (int(g) for g in m.groups())
    if area == 0 or area == 666 or area >= 900:
        return False
    return group != 0 and serial != 0


def is_valid_passport(value: str) -> bool:
    return bool(PASSPORT_RE.match(value or ""))


def is_jwt(value: str) -> bool:
    v = (value or "").strip()
    return len(v) >= JWT_MIN_LENGTH and bool(JWT_RE.match(v))


def is_aws_key(value: str) -> bool:
    return bool(AWS_KEY_RE.match((value or "").strip()))


def detect_pan(text: str) -> DetectorResult:
    if not PAN_CHARS_RE.match(text):
        return None
    digits = re.sub(r"[ -]", "", text)
    if 13 <= len(digits) <= 19 and is_luhn_valid(digits):
        return Match(DetectionKind.PAN, "Luhn valid primary account number", 0.9)
    return None


def detect_iban(text: str) -> DetectorResult:
    if is_valid_iban(text):
        return Match(DetectionKind.IBAN, "Valid IBAN checksum", 0.9)
    return None


def detect_ssn(text: str) -> DetectorResult:
    if not SSN_RE.match(text):
        return None
    if not is_valid_ssn(text):
        return VETO
    return Match(DetectionKind.SSN, "Valid US SSN format", 0.85)


def detect_passport(text: str) -> DetectorResult:
    if is_valid_passport(text):
        return Match(DetectionKind.PASSPORT, "Passport number format", 0.6)
    return None


def detect_jwt(text: str) -> DetectorResult:
    if is_jwt(text):
        return Match(DetectionKind.JWT, "Looks like a JWT token", 0.85)
    return None


def detect_api_key(text: str) -> DetectorResult:
    if is_aws_key(text):
        return Match(DetectionKind.API_KEY, "Looks like an AWS access key", 0.9)
    return None


def detect_email(text: str) -> DetectorResult:
    if EMAIL_RE.match(text):
        return Match(DetectionKind.EMAIL, "Matches email pattern", 0.9)
    return None


def detect_phone(text: str) -> DetectorResult:
    if not PHONE_CHARS_RE.match(text) or DATE_RE.match(text):
        return None
    digits = re.sub(r"\D", "", text)
    if not 7 <= len(digits) <= 15:
        return None
    if len(digits) == 10 or (len(digits) == 11 and digits.startswith("1")):
        return Match(DetectionKind.PHONE, "North American phone number", 0.85)
    if text.startswith("+"):
        return Match(DetectionKind.PHONE, "International phone number", 0.75)
    return Match(DetectionKind.PHONE, "Potential phone number", 0.6)


def detect_address(text: str) -> DetectorResult:
    lowered = text.lower().rstrip(".")
    if lowered in STREET_SUFFIXES:
        return Match(DetectionKind.ADDRESS, "Street type indicator", 0.8)
    if text in US_STATES:
        return Match(DetectionKind.ADDRESS, "US state abbreviation", 0.8)
    if ZIP_RE.match(text):
        return Match(DetectionKind.ADDRESS, "ZIP code", 0.75)
    if HOUSE_NUMBER_RE.match(text) or APARTMENT_RE.match(text):
        return Match(DetectionKind.ADDRESS, "House or apartment number", 0.7)
    if lowered in DIRECTIONALS:
        return Match(DetectionKind.ADDRESS, "Directional indicator", 0.6)
    if BARE_NUMBER_RE.match(text):
        return Match(DetectionKind.ADDRESS, "Number that may be part of an address", 0.3)
    return None


def detect_name(text: str) -> DetectorResult:
    if len(text) < 3 or any(ch.isdigit() for ch in text) or text.isupper():
        return None
    if not NAME_RE.match(text) or text.lower() in NAME_STOPWORDS:
        return None
    return Match(DetectionKind.NAME, "Likely proper name", 0.6)


DETECTORS: Tuple[Tuple[DetectionKind, Detector], ...] = (
    (DetectionKind.PAN, detect_pan),
    (DetectionKind.IBAN, detect_iban),
    (DetectionKind.SSN, detect_ssn),
    (DetectionKind.PASSPORT, detect_passport),
    (DetectionKind.JWT, detect_jwt),
    (DetectionKind.API_KEY, detect_api_key),
    (DetectionKind.EMAIL, detect_email),
    (DetectionKind.PHONE, detect_phone),
    (DetectionKind.ADDRESS, detect_address),
    (DetectionKind.NAME, detect_name),
)


def detect_token(text: str) -> Optional[Match]:
    """Classify a token with the built-in registry only."""
    raw = _clean(text)
    if not raw:
        return None
    for _, detector in DETECTORS:
        result = detector(raw)
        if result is VETO:
            return None
        if result is not None:
            return result  # type: ignore[return-value]
    return None


def classify(text: str, engine: Optional["PatternEngine"] = None) -> Optional[Match]:
    """Classify a token: custom patterns first, then the built-in registry."""
    if engine is not None:
        raw = (text or "").strip()
        if raw:
            custom = engine.match(raw)
            if custom is not None:
                return custom
    return detect_token(text)


__all__ = [
    "Match",
    "VETO",
    "DETECTORS",
    "is_luhn_valid",
    "is_valid_iban",
    "is_valid_ssn",
    "is_valid_passport",
    "is_jwt",
    "is_aws_key",
    "detect_token",
    "classify",
]
