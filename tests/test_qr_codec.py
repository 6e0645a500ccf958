import base64
import json

import pytest

from checkin.modules.qr_codec import DecodeFailure, QRCodec, ScanPayload


@pytest.fixture
def codec():
    return QRCodec()


def test_encode_builds_canonical_envelope(codec):
    data = json.loads(codec.encode_payload("evt-1", "reg-1"))

    assert data["type"] == "event_registration"
    assert data["eventId"] == "evt-1"
    assert data["registrationId"] == "reg-1"
    assert data["version"] == "1.0"
    assert isinstance(data["timestamp"], int)


@pytest.mark.parametrize("event_id, registration_id", [
    ("evt123", "reg456"),
    ("0b6d0a3e-8f5e-4c1a-9f0a-3b7f6f1e2d4c", "a1b2c3d4-e5f6-7890-abcd-ef1234567890"),
])
def test_decode_of_encoded_payload_returns_identifiers(codec, event_id, registration_id):
    decoded = codec.decode_payload(codec.encode_payload(event_id, registration_id))

    assert isinstance(decoded, ScanPayload)
    assert (decoded.event_id, decoded.registration_id) == (event_id, registration_id)
    assert decoded.source_format == "structured"


def test_decode_ignores_timestamp_value(codec):
    raw = json.dumps({"type": "event_registration", "eventId": "e", "registrationId": "r",
                      "timestamp": "not-a-number", "version": "9"})

    decoded = codec.decode_payload(raw)

    assert (decoded.event_id, decoded.registration_id) == ("e", "r")


@pytest.mark.parametrize("event_id, registration_id", [("", "reg"), ("evt", "")])
def test_encode_rejects_missing_identifier(codec, event_id, registration_id):
    with pytest.raises(ValueError):
        codec.encode_payload(event_id, registration_id)


@pytest.mark.parametrize("raw, expected", [
    ('{"id": "reg-9"}', ("", "reg-9")),
    ('{"registrationId": "reg-9", "eventId": "evt-9"}', ("evt-9", "reg-9")),
    ('{"registration_id": "reg-9", "event_id": "evt-9"}', ("evt-9", "reg-9")),
    ('{"type": "other", "id": 42}', ("", "42")),
])
def test_decode_structured_alternate_field_names(codec, raw, expected):
    decoded = codec.decode_payload(raw)

    assert isinstance(decoded, ScanPayload)
    assert (decoded.event_id, decoded.registration_id) == expected


def test_decode_verification_url(codec):
    decoded = codec.decode_payload("https://app.example/verify/evt123/reg456")

    assert (decoded.event_id, decoded.registration_id) == ("evt123", "reg456")
    assert decoded.source_format == "path"


def test_decode_verification_path_without_event(codec):
    decoded = codec.decode_payload("/verify/reg456/?ref=email")

    assert (decoded.event_id, decoded.registration_id) == ("", "reg456")


def test_decode_colon_pair(codec):
    decoded = codec.decode_payload("evt123:reg456")

    assert (decoded.event_id, decoded.registration_id) == ("evt123", "reg456")
    assert decoded.source_format == "delimited"


def test_decode_colon_pair_with_unusable_event_token(codec):
    decoded = codec.decode_payload("  :reg456")

    assert (decoded.event_id, decoded.registration_id) == ("", "reg456")


def test_decode_bare_uuid(codec):
    decoded = codec.decode_payload("  a1b2c3d4-e5f6-7890-abcd-ef1234567890\n")

    assert decoded.event_id == ""
    assert decoded.registration_id == "a1b2c3d4-e5f6-7890-abcd-ef1234567890"
    assert decoded.source_format == "bare_uuid"


@pytest.mark.parametrize("raw", [
    "not a qr payload at all",
    "ticket a1b2c3d4-e5f6-7890-abcd-ef1234567890 please",
    "https://example.com",
    "a:b:c",
    '{"name": "no identifiers here"}',
    "12345",
])
def test_decode_rejects_unrecognized_text(codec, raw):
    decoded = codec.decode_payload(raw)

    assert isinstance(decoded, DecodeFailure)
    assert decoded.error_type == "unrecognized_format"
    assert decoded.raw == raw


@pytest.mark.parametrize("raw", ["", "   ", None])
def test_decode_rejects_empty_input(codec, raw):
    decoded = codec.decode_payload(raw)

    assert isinstance(decoded, DecodeFailure)
    assert decoded.error_type == "empty_payload"


def test_verification_url_decodes_back(codec):
    url = codec.build_verification_url("https://app.example/", "evt 1", "reg/2")

    assert url == "https://app.example/verify/evt%201/reg%2F2"
    decoded = codec.decode_payload(url)
    assert (decoded.event_id, decoded.registration_id) == ("evt 1", "reg/2")


def test_generate_qr_image_returns_png_data_url(codec):
    image = codec.generate_qr_image(codec.encode_payload("evt", "reg"))

    prefix = "data:image/png;base64,"
    assert image.startswith(prefix)
    assert base64.b64decode(image[len(prefix):])[:8] == b"\x89PNG\r\n\x1a\n"


@pytest.mark.parametrize("raw", [
    "[" * 100000,
    '{"id": ' * 50000,
    "[" * 5000 + "]" * 5000,
    '"just a string"',
    "true",
    '["reg-1", "evt-1"]',
    "x" * 200000,
])
def test_decode_never_raises_on_pathological_text(codec, raw):
    decoded = codec.decode_payload(raw)

    assert isinstance(decoded, DecodeFailure)
    assert decoded.error_type == "unrecognized_format"


@pytest.mark.parametrize("raw", [12345, 0, ["reg-1"], {"id": "reg-1"}, True])
def test_decode_classifies_non_text_input(codec, raw):
    decoded = codec.decode_payload(raw)

    assert isinstance(decoded, DecodeFailure)
    assert decoded.error_type == "unrecognized_format"
    assert decoded.raw == str(raw)
