"""
Check-in Controller Module - Event Check-in Service

Adapter between the HTTP layer and the verification service. It turns a
VerificationOutcome into a JSON body and status code. The organizer path
gets category-specific messages (plus diagnostics in debug mode); the public
path only ever learns success, already checked in, or a generic failure.
"""

from typing import Dict, Any, Tuple
import logging
from checkin.modules.verification_service import (
    Requester,
    VerificationOutcome,
    INVALID_PAYLOAD,
    EVENT_NOT_FOUND_OR_UNAUTHORIZED,
    REGISTRATION_NOT_FOUND,
    ALREADY_VERIFIED,
    VERIFIED_NOW,
    INTERNAL_FAILURE,
)

HTTP_STATUS = {
    VERIFIED_NOW: 200,
    ALREADY_VERIFIED: 200,
    INVALID_PAYLOAD: 400,
    EVENT_NOT_FOUND_OR_UNAUTHORIZED: 404,
    REGISTRATION_NOT_FOUND: 404,
    INTERNAL_FAILURE: 500,
}

ORGANIZER_ERRORS = {
    INVALID_PAYLOAD: 'Invalid QR code format. Could not extract registration ID.',
    EVENT_NOT_FOUND_OR_UNAUTHORIZED: 'Event not found or unauthorized',
    REGISTRATION_NOT_FOUND: 'Registration not found for this event',
    INTERNAL_FAILURE: 'Internal server error',
}

PUBLIC_ERROR = 'Verification failed'

Response = Tuple[Dict[str, Any], int]


class CheckInController:
    """Shapes verification outcomes into responses."""

    def __init__(self, verification_service, debug: bool = False):
        """
        Args:
            verification_service: VerificationService instance
            debug (bool): Include diagnostics in organizer error responses
        """
        self.service = verification_service
        self.debug = debug
        self.logger = logging.getLogger(__name__)

    def organizer_check_in(self, raw_payload: str, event_id: str, organizer_id: str) -> Response:
        outcome = self.service.verify_and_check_in(raw_payload, event_id, Requester.organizer(organizer_id))
        return self._respond(outcome, public=False)

    def public_check_in(self, raw_payload: str, event_id: str) -> Response:
        outcome = self.service.verify_and_check_in(raw_payload, event_id, Requester.public())
        return self._respond(outcome, public=True)

    def _respond(self, outcome: VerificationOutcome, public: bool) -> Response:
        status_code = HTTP_STATUS[outcome.status]

        if outcome.status == INTERNAL_FAILURE:
            self.logger.error(
                f"Internal check-in failure (event={outcome.event_id}, raw={outcome.raw_payload!r}): {outcome.diagnostic}"
            )

        if outcome.succeeded:
            name = outcome.registration['name']
            body = {
                'success': True,
                'status': outcome.status,
                'registration': outcome.registration,
                'alreadyVerified': outcome.status == ALREADY_VERIFIED,
            }
            if outcome.status == VERIFIED_NOW:
                body['message'] = f"{name} verified successfully"
            else:
                body['message'] = f"{name} is already checked in"
            return body, status_code

        if public:
            return {'success': False, 'status': outcome.status, 'error': PUBLIC_ERROR}, status_code

        body = {
            'success': False,
            'status': outcome.status,
            'error': ORGANIZER_ERRORS[outcome.status],
        }
        if self.debug and outcome.diagnostic:
            body['debug'] = outcome.diagnostic
        if self.debug and outcome.extra.get('error_type'):
            body['error_type'] = outcome.extra['error_type']
        return body, status_code
