"""
QR Codec Module - Event Check-in Service

This module turns registrations into scannable QR payloads and turns scanned
text back into registration identities. Scanners in the field still present
codes printed by earlier releases, so decoding accepts the current JSON
envelope as well as the verification-URL, colon-pair and bare-UUID formats.

Features:
- Canonical JSON payload encoding
- Tolerant multi-format payload decoding
- QR code image rendering (PNG data URL)
- Verification link generation
"""

import qrcode
import io
import base64
import json
import re
import time
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union
from urllib.parse import quote, unquote

PAYLOAD_TYPE = 'event_registration'
PAYLOAD_VERSION = '1.0'
VERIFY_PATH_MARKER = '/verify/'
PAIR_SEPARATOR = ':'

# Field names seen in structured payloads, canonical name first
REGISTRATION_ID_FIELDS = ('registrationId', 'registration_id', 'id')
EVENT_ID_FIELDS = ('eventId', 'event_id')

UUID_PATTERN = re.compile(
    r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}',
    re.IGNORECASE
)
TOKEN_PATTERN = re.compile(r'[A-Za-z0-9][A-Za-z0-9_-]*')


@dataclass
class ScanPayload:
    """Identity decoded from a scanned code."""
    event_id: str
    registration_id: str
    source_format: str = ''


@dataclass
class DecodeFailure:
    """Explicit result for scanned text that carries no registration identity."""
    raw: str
    error: str
    error_type: str


DecodeResult = Union[ScanPayload, DecodeFailure]


class QRCodec:
    """
    Encoder/decoder for registration check-in payloads.
    Decoding never raises for malformed input and never mutates state.
    """

    def __init__(self, box_size: int = 10, border: int = 1):
        self.logger = logging.getLogger(__name__)

        self.image_settings = {
            'error_correction': qrcode.constants.ERROR_CORRECT_H,  # ~30% error correction
            'box_size': box_size,
            'border': border,
            'fill_color': 'black',
            'back_color': 'white'
        }

        # Tried in order; the first strategy returning a payload wins
        self.strategies: List[Tuple[str, Callable[[str], Optional[ScanPayload]]]] = [
            ('structured', self._decode_structured),
            ('path', self._decode_path),
            ('delimited', self._decode_delimited),
            ('bare_uuid', self._decode_bare_identifier),
        ]

    def encode_payload(self, event_id: str, registration_id: str) -> str:
        """
        Build the canonical payload for a registration.

        Args:
            event_id (str): Event identifier
            registration_id (str): Registration identifier

        Returns:
            str: JSON envelope to embed in a QR code

        Raises:
            ValueError: If either identifier is empty
        """
        if not event_id or not registration_id:
            raise ValueError("Both event_id and registration_id are required")

        payload = {
            'type': PAYLOAD_TYPE,
            'eventId': str(event_id),
            'registrationId': str(registration_id),
            'timestamp': int(time.time() * 1000),
            'version': PAYLOAD_VERSION
        }
        return json.dumps(payload)

    def decode_payload(self, raw) -> DecodeResult:
        """
        Decode scanned text into a ScanPayload.

        Args:
            raw (str): Text produced by the scanner or typed by hand

        Returns:
            ScanPayload on success, DecodeFailure otherwise
        """
        if raw is not None and not isinstance(raw, str):
            return DecodeFailure(
                raw=str(raw),
                error='Unrecognized payload format',
                error_type='unrecognized_format'
            )

        text = (raw or '').strip()
        if not text:
            return DecodeFailure(
                raw=raw or '',
                error='Empty payload',
                error_type='empty_payload'
            )

        for name, extractor in self.strategies:
            payload = extractor(text)
            if payload is not None:
                payload.source_format = name
                self.logger.debug(f"Decoded payload as {name}: {payload.registration_id}")
                return payload

        return DecodeFailure(
            raw=raw,
            error='Unrecognized payload format',
            error_type='unrecognized_format'
        )

    def _decode_structured(self, text: str) -> Optional[ScanPayload]:
        try:
            data = json.loads(text)
        except (ValueError, RecursionError):
            return None

        if not isinstance(data, dict):
            return None

        if data.get('type') == PAYLOAD_TYPE and data.get('eventId') and data.get('registrationId'):
            return ScanPayload(event_id=str(data['eventId']), registration_id=str(data['registrationId']))

        registration_id = self._first_field(data, REGISTRATION_ID_FIELDS)
        if not registration_id:
            return None
        return ScanPayload(
            event_id=self._first_field(data, EVENT_ID_FIELDS),
            registration_id=registration_id
        )

    @staticmethod
    def _first_field(data: dict, names) -> str:
        for name in names:
            value = data.get(name)
            if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value).strip():
                return str(value).strip()
        return ''

    def _decode_path(self, text: str) -> Optional[ScanPayload]:
        if VERIFY_PATH_MARKER not in text:
            return None

        tail = text.rsplit(VERIFY_PATH_MARKER, 1)[1]
        tail = re.split(r'[?#]', tail, maxsplit=1)[0]
        segments = [unquote(segment) for segment in tail.split('/') if segment]
        if not segments:
            return None

        return ScanPayload(
            event_id=segments[-2] if len(segments) > 1 else '',
            registration_id=segments[-1]
        )

    def _decode_delimited(self, text: str) -> Optional[ScanPayload]:
        if text.count(PAIR_SEPARATOR) != 1:
            return None

        first, last = (token.strip() for token in text.split(PAIR_SEPARATOR))
        if not TOKEN_PATTERN.fullmatch(last):
            return None

        return ScanPayload(
            event_id=first if TOKEN_PATTERN.fullmatch(first) else '',
            registration_id=last
        )

    def _decode_bare_identifier(self, text: str) -> Optional[ScanPayload]:
        if not UUID_PATTERN.fullmatch(text):
            return None
        return ScanPayload(event_id='', registration_id=text)

    def generate_qr_image(self, data: str) -> str:
        """
        Render payload data into a PNG QR code.

        Args:
            data (str): Payload to embed

        Returns:
            str: ``data:image/png;base64,...`` URL
        """
        qr = qrcode.QRCode(
            version=None,
            error_correction=self.image_settings['error_correction'],
            box_size=self.image_settings['box_size'],
            border=self.image_settings['border']
        )
        qr.add_data(data)
        qr.make(fit=True)

        img = qr.make_image(
            fill_color=self.image_settings['fill_color'],
            back_color=self.image_settings['back_color']
        )

        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        img_base64 = base64.b64encode(buffer.getvalue()).decode()
        return f"data:image/png;base64,{img_base64}"

    def build_verification_url(self, base_url: str, event_id: str, registration_id: str) -> str:
        """Link to the public verification page for a registration."""
        return (f"{base_url.rstrip('/')}{VERIFY_PATH_MARKER}"
                f"{quote(str(event_id), safe='')}/{quote(str(registration_id), safe='')}")
