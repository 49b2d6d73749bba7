"""
Verification Codec - the compact payload printed inside a hall ticket's QR code

Wire format (version 1), compact JSON with keys in this order:

    {"v":1,"t":"<ticket[:8]>","s":"<student[:8]>","e":"<exam[:8]>","h":"<tag[:16]>"}

`t`/`s`/`e` are the first 8 hex characters of the full UUIDs; they keep the
code small enough to scan reliably at small print sizes. `h` is the first 16
hex characters of SHA-256 over "ticket:student:exam:secret" computed from the
*full* ids, so the printed short ids alone are not enough to forge a tag.

Known limitation: 32-bit short ids collide with non-negligible probability
once an examination has tens of thousands of tickets (birthday bound). The
widths are part of the printed format; widening them needs a new `v`, and
version 1 codes must keep verifying. Codes printed before the version marker
existed carry no `v` and are read as version 1.
"""

import hashlib
import hmac
import json
import string
from dataclasses import dataclass
from typing import Optional, Tuple, Union
from uuid import UUID

from app.core.types import normalize_uuid

CODEC_VERSION = 1
SHORT_ID_LENGTH = 8
BINDING_TAG_LENGTH = 16
MAX_CODE_LENGTH = 500  # hall_tickets.qr_code_data column width

_HEX_DIGITS = frozenset(string.hexdigits.lower())

IdLike = Union[str, UUID]


class MalformedCodeError(ValueError):
    """Scanned text is not a verification payload this codec understands"""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


@dataclass(frozen=True)
class VerificationPayload:
    """Decoded verification code contents"""
    ticket_short: str
    student_short: str
    exam_short: str
    binding_tag: str
    version: int = CODEC_VERSION

    def to_dict(self) -> dict:
        return {
            "v": self.version,
            "t": self.ticket_short,
            "s": self.student_short,
            "e": self.exam_short,
            "h": self.binding_tag,
        }


@dataclass(frozen=True)
class CodecCheck:
    """Outcome of verifying a code against a ticket's identifiers"""
    ok: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok


def short_id(value: IdLike) -> str:
    return normalize_uuid(value)[:SHORT_ID_LENGTH]


def compute_binding_tag(ticket_id: IdLike, student_id: IdLike, exam_id: IdLike, secret: str) -> str:
    """First 16 hex chars of SHA-256 over the full ids and the secret"""
    material = f"{normalize_uuid(ticket_id)}:{normalize_uuid(student_id)}:{normalize_uuid(exam_id)}:{secret}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()[:BINDING_TAG_LENGTH]


def derive_tenant_secret(master_secret: str, tenant_id: IdLike) -> str:
    """Per-tenant secret so one leaked key does not expose every tenant"""
    return hmac.new(
        master_secret.encode("utf-8"),
        normalize_uuid(tenant_id).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def encode(ticket_id: IdLike, student_id: IdLike, exam_id: IdLike, secret: str) -> str:
    """Build the verification code for a ticket"""
    if not secret:
        raise ValueError("verification secret must not be empty")

    payload = VerificationPayload(
        ticket_short=short_id(ticket_id),
        student_short=short_id(student_id),
        exam_short=short_id(exam_id),
        binding_tag=compute_binding_tag(ticket_id, student_id, exam_id, secret),
    )
    return json.dumps(payload.to_dict(), separators=(",", ":"))


def _require_hex(payload: dict, key: str, length: int) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise MalformedCodeError(f"missing field '{key}'")
    value = value.lower()
    if len(value) != length or not set(value) <= _HEX_DIGITS:
        raise MalformedCodeError(f"field '{key}' is not {length} hex characters")
    return value


def decode(code: str) -> VerificationPayload:
    """
    Parse a scanned code.

    Raises MalformedCodeError for anything that is not a well formed payload
    of a supported version.
    """
    if not isinstance(code, str) or not code.strip():
        raise MalformedCodeError("empty code")
    if len(code) > MAX_CODE_LENGTH:
        raise MalformedCodeError("code too long")

    try:
        raw = json.loads(code)
    except ValueError:
        raise MalformedCodeError("not valid JSON")

    if not isinstance(raw, dict):
        raise MalformedCodeError("payload is not an object")

    version = raw.get("v", CODEC_VERSION)
    if isinstance(version, bool) or version != CODEC_VERSION:
        raise MalformedCodeError(f"unsupported payload version {version!r}")

    return VerificationPayload(
        ticket_short=_require_hex(raw, "t", SHORT_ID_LENGTH),
        student_short=_require_hex(raw, "s", SHORT_ID_LENGTH),
        exam_short=_require_hex(raw, "e", SHORT_ID_LENGTH),
        binding_tag=_require_hex(raw, "h", BINDING_TAG_LENGTH),
        version=CODEC_VERSION,
    )


def check(code: str, ticket_id: IdLike, student_id: IdLike, exam_id: IdLike, secret: str) -> CodecCheck:
    """Verify a code, reporting why it failed. Never raises."""
    try:
        payload = decode(code)
    except MalformedCodeError as e:
        return CodecCheck(False, f"malformed: {e.reason}")

    try:
        expected = (short_id(ticket_id), short_id(student_id), short_id(exam_id))
        tag = compute_binding_tag(ticket_id, student_id, exam_id, secret)
    except (ValueError, TypeError, AttributeError):
        return CodecCheck(False, "invalid identifiers")

    if payload.ticket_short != expected[0]:
        return CodecCheck(False, "ticket id mismatch")
    if payload.student_short != expected[1]:
        return CodecCheck(False, "student id mismatch")
    if payload.exam_short != expected[2]:
        return CodecCheck(False, "examination id mismatch")
    if not hmac.compare_digest(payload.binding_tag, tag):
        return CodecCheck(False, "binding tag mismatch")
    return CodecCheck(True)


def verify(code: str, ticket_id: IdLike, student_id: IdLike, exam_id: IdLike, secret: str) -> bool:
    return check(code, ticket_id, student_id, exam_id, secret).ok


class VerificationCodec:
    """Codec bound to the server secret, optionally scoped per tenant"""

    def __init__(self, secret: str, tenant_scoped: bool = False):
        if not secret:
            raise ValueError("verification secret must not be empty")
        self._secret = secret
        self.tenant_scoped = tenant_scoped

    def secret_for(self, tenant_id: Optional[IdLike]) -> str:
        if self.tenant_scoped:
            if tenant_id is None:
                raise ValueError("tenant id required when secrets are tenant scoped")
            return derive_tenant_secret(self._secret, tenant_id)
        return self._secret

    def encode(self, ticket_id: IdLike, student_id: IdLike, exam_id: IdLike,
               tenant_id: Optional[IdLike] = None) -> str:
        return encode(ticket_id, student_id, exam_id, self.secret_for(tenant_id))

    def check(self, code: str, ticket_id: IdLike, student_id: IdLike, exam_id: IdLike,
              tenant_id: Optional[IdLike] = None) -> CodecCheck:
        try:
            secret = self.secret_for(tenant_id)
        except ValueError as e:
            return CodecCheck(False, str(e))
        return check(code, ticket_id, student_id, exam_id, secret)

    def verify(self, code: str, ticket_id: IdLike, student_id: IdLike, exam_id: IdLike,
               tenant_id: Optional[IdLike] = None) -> bool:
        return self.check(code, ticket_id, student_id, exam_id, tenant_id).ok

    @staticmethod
    def decode(code: str) -> Tuple[Optional[VerificationPayload], Optional[str]]:
        """(payload, None) on success, (None, reason) on failure"""
        try:
            return decode(code), None
        except MalformedCodeError as e:
            return None, e.reason
