"""
Unit Tests for the Verification Codec
Tests for: payload format, verification, tamper detection, malformed input
"""
import json
import uuid

import pytest

from app.modules.hallticket.codec import (
    MalformedCodeError,
    VerificationCodec,
    check,
    compute_binding_tag,
    decode,
    derive_tenant_secret,
    encode,
    short_id,
    verify,
)

SECRET = "codec-test-secret"

TICKET_ID = "3f2b8c1e-9a4d-4e6f-8b1a-2c3d4e5f6a7b"
STUDENT_ID = "a1b2c3d4-e5f6-4789-9abc-def012345678"
EXAM_ID = "0badc0de-1234-4567-89ab-cdef01234567"


def _replace_field(code: str, key: str) -> str:
    payload = json.loads(code)
    value = payload[key]
    payload[key] = ("0" if value[0] != "0" else "1") + value[1:]
    return json.dumps(payload, separators=(",", ":"))


class TestEncode:
    """Test the printed payload"""

    def test_payload_is_compact_json_in_fixed_key_order(self):
        code = encode(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET)

        assert " " not in code
        assert list(json.loads(code).keys()) == ["v", "t", "s", "e", "h"]

    def test_payload_carries_short_ids_and_truncated_tag(self):
        payload = json.loads(encode(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET))

        assert payload["v"] == 1
        assert payload["t"] == "3f2b8c1e"
        assert payload["s"] == "a1b2c3d4"
        assert payload["e"] == "0badc0de"
        assert payload["h"] == compute_binding_tag(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET)
        assert len(payload["h"]) == 16

    def test_encoding_is_deterministic(self):
        assert encode(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET) == encode(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET)

    def test_accepts_uuid_objects_and_uppercase_strings(self):
        code = encode(uuid.UUID(TICKET_ID), STUDENT_ID.upper(), EXAM_ID, SECRET)

        assert code == encode(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET)

    def test_empty_secret_is_rejected(self):
        with pytest.raises(ValueError):
            encode(TICKET_ID, STUDENT_ID, EXAM_ID, "")

    def test_invalid_identifier_is_rejected(self):
        with pytest.raises(ValueError):
            encode("not-a-uuid", STUDENT_ID, EXAM_ID, SECRET)

    def test_short_id_is_first_eight_hex_characters(self):
        assert short_id(TICKET_ID) == TICKET_ID[:8]


class TestVerify:
    """Test verification and tamper detection"""

    def test_round_trip_verifies(self):
        code = encode(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET)

        assert verify(code, TICKET_ID, STUDENT_ID, EXAM_ID, SECRET) is True

    @pytest.mark.parametrize("key", ["t", "s", "e", "h"])
    def test_changing_one_field_fails(self, key):
        code = _replace_field(encode(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET), key)

        assert verify(code, TICKET_ID, STUDENT_ID, EXAM_ID, SECRET) is False

    def test_wrong_secret_fails(self):
        code = encode(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET)

        result = check(code, TICKET_ID, STUDENT_ID, EXAM_ID, "another-secret")

        assert result.ok is False
        assert result.reason == "binding tag mismatch"

    def test_tag_binds_full_ids_not_just_short_ids(self):
        """Two tickets sharing the first 8 characters must not share a code"""
        twin_ticket = TICKET_ID[:8] + "-0000-4000-8000-000000000000"
        code = encode(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET)

        assert verify(code, twin_ticket, STUDENT_ID, EXAM_ID, SECRET) is False

    def test_mismatch_reports_which_field(self):
        code = encode(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET)
        other_student = str(uuid.uuid4())

        result = check(code, TICKET_ID, other_student, EXAM_ID, SECRET)

        assert not result
        assert result.reason == "student id mismatch"

    def test_uppercase_code_still_verifies(self):
        code = encode(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET)
        payload = {k: (v.upper() if isinstance(v, str) else v) for k, v in json.loads(code).items()}

        assert verify(json.dumps(payload), TICKET_ID, STUDENT_ID, EXAM_ID, SECRET) is True

    def test_code_without_version_is_read_as_version_one(self):
        payload = json.loads(encode(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET))
        del payload["v"]

        assert verify(json.dumps(payload), TICKET_ID, STUDENT_ID, EXAM_ID, SECRET) is True

    def test_invalid_ticket_identifiers_fail_without_raising(self):
        code = encode(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET)

        result = check(code, "garbage", STUDENT_ID, EXAM_ID, SECRET)

        assert result.ok is False
        assert result.reason == "invalid identifiers"


class TestMalformedInput:
    """Test decoding of text that is not a verification payload"""

    @pytest.mark.parametrize("code", [
        "",
        "   ",
        "not json at all",
        "[1, 2, 3]",
        '{"t":"3f2b8c1e"}',
        '{"v":1,"t":"zzzzzzzz","s":"a1b2c3d4","e":"0badc0de","h":"0123456789abcdef"}',
        '{"v":1,"t":"3f2b8c","s":"a1b2c3d4","e":"0badc0de","h":"0123456789abcdef"}',
        '{"v":2,"t":"3f2b8c1e","s":"a1b2c3d4","e":"0badc0de","h":"0123456789abcdef"}',
        '{"v":true,"t":"3f2b8c1e","s":"a1b2c3d4","e":"0badc0de","h":"0123456789abcdef"}',
    ])
    def test_malformed_code_never_verifies(self, code):
        assert verify(code, TICKET_ID, STUDENT_ID, EXAM_ID, SECRET) is False
        with pytest.raises(MalformedCodeError):
            decode(code)

    def test_oversized_code_is_malformed(self):
        with pytest.raises(MalformedCodeError) as exc_info:
            decode("x" * 1000)

        assert exc_info.value.reason == "code too long"

    def test_non_string_input_is_malformed(self):
        assert verify(None, TICKET_ID, STUDENT_ID, EXAM_ID, SECRET) is False

    def test_check_reports_malformed_reason(self):
        result = check("{}", TICKET_ID, STUDENT_ID, EXAM_ID, SECRET)

        assert result.ok is False
        assert result.reason.startswith("malformed:")


class TestVerificationCodec:
    """Test the secret-bound codec"""

    def test_requires_a_secret(self):
        with pytest.raises(ValueError):
            VerificationCodec("")

    def test_shared_secret_round_trip(self):
        codec = VerificationCodec(SECRET)
        code = codec.encode(TICKET_ID, STUDENT_ID, EXAM_ID)

        assert codec.verify(code, TICKET_ID, STUDENT_ID, EXAM_ID)
        assert code == encode(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET)

    def test_tenant_scoped_secret_differs_per_tenant(self):
        tenant_a, tenant_b = str(uuid.uuid4()), str(uuid.uuid4())
        codec = VerificationCodec(SECRET, tenant_scoped=True)

        code = codec.encode(TICKET_ID, STUDENT_ID, EXAM_ID, tenant_id=tenant_a)

        assert codec.verify(code, TICKET_ID, STUDENT_ID, EXAM_ID, tenant_id=tenant_a)
        assert not codec.verify(code, TICKET_ID, STUDENT_ID, EXAM_ID, tenant_id=tenant_b)
        assert not VerificationCodec(SECRET).verify(code, TICKET_ID, STUDENT_ID, EXAM_ID)

    def test_tenant_scoped_secret_is_hmac_of_master(self):
        tenant = str(uuid.uuid4())

        assert derive_tenant_secret(SECRET, tenant) == derive_tenant_secret(SECRET, tenant.upper())
        assert derive_tenant_secret(SECRET, tenant) != SECRET

    def test_tenant_scoped_encode_needs_tenant(self):
        codec = VerificationCodec(SECRET, tenant_scoped=True)

        with pytest.raises(ValueError):
            codec.encode(TICKET_ID, STUDENT_ID, EXAM_ID)

    def test_decode_returns_reason_instead_of_raising(self):
        payload, reason = VerificationCodec.decode("nope")

        assert payload is None
        assert reason == "not valid JSON"

    def test_decode_returns_payload(self):
        code = encode(TICKET_ID, STUDENT_ID, EXAM_ID, SECRET)

        payload, reason = VerificationCodec.decode(code)

        assert reason is None
        assert payload.ticket_short == "3f2b8c1e"
        assert payload.to_dict() == json.loads(code)
