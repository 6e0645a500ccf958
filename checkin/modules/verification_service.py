"""
Verification Service Module - Event Check-in Service

This module performs check-in: it resolves a scanned payload to a
registration of the event being scanned, enforces organizer ownership when
required, and moves the registration from unverified to verified. Repeated
and concurrent scans of the same code are safe: exactly one scan reports
VERIFIED_NOW and every other one reports ALREADY_VERIFIED.

Features:
- Organizer (ownership-scoped) and public verification paths
- Event-scoped registration resolution
- Idempotent, at-most-once check-in transition
- Outcome values instead of exceptions for expected conditions
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional
import logging
from checkin.modules.qr_codec import QRCodec, DecodeFailure
from checkin.modules.registration_manager import public_fields

INVALID_PAYLOAD = 'invalid_payload'
EVENT_NOT_FOUND_OR_UNAUTHORIZED = 'event_not_found_or_unauthorized'
REGISTRATION_NOT_FOUND = 'registration_not_found'
ALREADY_VERIFIED = 'already_verified'
VERIFIED_NOW = 'verified_now'
INTERNAL_FAILURE = 'internal_failure'


@dataclass(frozen=True)
class Requester:
    """Who is asking for a check-in. ``organizer_id`` is None on the public path."""
    organizer_id: Optional[str] = None

    @classmethod
    def organizer(cls, organizer_id: str) -> 'Requester':
        if not organizer_id:
            raise ValueError("organizer_id is required for the organizer path")
        return cls(organizer_id=organizer_id)

    @classmethod
    def public(cls) -> 'Requester':
        return cls()

    @property
    def requires_ownership(self) -> bool:
        return self.organizer_id is not None


@dataclass
class VerificationOutcome:
    """Result of one verification call."""
    status: str
    event_id: str = ''
    registration_id: str = ''
    registration: Optional[Dict[str, Any]] = None
    raw_payload: str = ''
    diagnostic: str = ''
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status in (VERIFIED_NOW, ALREADY_VERIFIED)


class VerificationService:
    """
    Check-in pipeline: decode, authorize, resolve, transition.
    """

    def __init__(self, event_manager, registration_manager, qr_codec: Optional[QRCodec] = None):
        """
        Initialize the verification service.

        Args:
            event_manager: Event store (get_event, get_event_for_owner)
            registration_manager: Registration store (get_registration, mark_verified)
            qr_codec (QRCodec): Payload decoder
        """
        self.events = event_manager
        self.registrations = registration_manager
        self.qr_codec = qr_codec or QRCodec()
        self.logger = logging.getLogger(__name__)

    def verify_and_check_in(self, raw_payload: str, event_id: str, requester: Requester) -> VerificationOutcome:
        """
        Check in the registration referenced by a scanned payload.

        Args:
            raw_payload (str): Scanned or typed text
            event_id (str): Event the scan happens in
            requester (Requester): Organizer or public caller

        Returns:
            VerificationOutcome: One of VERIFIED_NOW, ALREADY_VERIFIED,
            INVALID_PAYLOAD, EVENT_NOT_FOUND_OR_UNAUTHORIZED,
            REGISTRATION_NOT_FOUND or INTERNAL_FAILURE
        """
        try:
            if requester.requires_ownership:
                event = self.events.get_event_for_owner(event_id, requester.organizer_id)
            else:
                event = self.events.get_event(event_id)

            if not event:
                self.logger.warning(f"Check-in refused: event {event_id} not found or not owned by requester")
                return VerificationOutcome(
                    status=EVENT_NOT_FOUND_OR_UNAUTHORIZED,
                    event_id=event_id,
                    raw_payload=raw_payload,
                    diagnostic=f"Event {event_id} not found or unauthorized"
                )

            decoded = self.qr_codec.decode_payload(raw_payload)
            if isinstance(decoded, DecodeFailure):
                self.logger.warning(f"Invalid check-in payload for event {event_id}: {decoded.error}")
                return VerificationOutcome(
                    status=INVALID_PAYLOAD,
                    event_id=event_id,
                    raw_payload=raw_payload,
                    diagnostic=f"Received: {raw_payload}",
                    extra={'error_type': decoded.error_type}
                )

            registration_id = decoded.registration_id
            scope_event_id = decoded.event_id or event_id

            registration = None
            if scope_event_id == event_id:
                registration = self.registrations.get_registration(registration_id, scope_event_id)

            if not registration:
                return self._not_found(raw_payload, registration_id, scope_event_id)

            if registration['verified']:
                return self._outcome(ALREADY_VERIFIED, raw_payload, event_id, registration)

            transitioned = self.registrations.mark_verified(registration_id, event_id)
            current = self.registrations.get_registration(registration_id, event_id)
            if not current:
                # Deleted between lookup and update
                return self._not_found(raw_payload, registration_id, scope_event_id)

            status = VERIFIED_NOW if transitioned else ALREADY_VERIFIED
            return self._outcome(status, raw_payload, event_id, current)

        except Exception as e:
            self.logger.error(f"Check-in failed for event {event_id}: {str(e)}")
            return VerificationOutcome(
                status=INTERNAL_FAILURE,
                event_id=event_id,
                raw_payload=raw_payload,
                diagnostic=str(e)
            )

    def _not_found(self, raw_payload, registration_id, scope_event_id) -> VerificationOutcome:
        self.logger.warning(f"Registration {registration_id} not found in event {scope_event_id}")
        return VerificationOutcome(
            status=REGISTRATION_NOT_FOUND,
            event_id=scope_event_id,
            registration_id=registration_id,
            raw_payload=raw_payload,
            diagnostic=f"Looking for registration ID: {registration_id} in event: {scope_event_id}"
        )

    def _outcome(self, status, raw_payload, event_id, registration) -> VerificationOutcome:
        self.logger.info(f"Check-in {status}: registration {registration['id']} event {event_id}")
        return VerificationOutcome(
            status=status,
            event_id=event_id,
            registration_id=registration['id'],
            registration=public_fields(registration),
            raw_payload=raw_payload
        )
