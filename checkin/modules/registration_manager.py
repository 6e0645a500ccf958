"""
Registration Manager Module - Event Check-in Service

This module handles attendee registrations. It creates self-registrations
(enforcing event status, one registration per email per event and the
event's capacity), stores each registration's QR code, answers the
event-scoped lookups used during check-in and performs the conditional
verified-flag update that makes check-in happen at most once.

Features:
- Self-registration with duplicate and capacity checks
- QR payload encoding and image storage at creation time
- Event-scoped registration lookups
- Atomic unverified -> verified transition
- Organizer verification override
"""

from typing import Dict, Any, Optional
import logging
import re
import sqlite3
import uuid
from checkin.modules.event_manager import STATUS_ACTIVE
from checkin.modules.qr_codec import QRCodec

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$')


def public_fields(registration: Dict[str, Any]) -> Dict[str, Any]:
    """Fields of a registration that may be shown to scanners and attendees."""
    return {
        'id': registration['id'],
        'name': registration['name'],
        'email': registration['email'],
        'verified': bool(registration['verified'])
    }


class RegistrationManager:
    """
    Registration store for the check-in service.
    Lookups and the verified transition let storage errors propagate so the
    verification pipeline can report them; CRUD helpers return result
    dictionaries.
    """

    def __init__(self, database_manager, qr_codec: Optional[QRCodec] = None):
        """
        Initialize the registration manager.

        Args:
            database_manager: Database manager instance
            qr_codec (QRCodec): Codec used to build registration QR codes
        """
        self.db = database_manager
        self.qr_codec = qr_codec or QRCodec()
        self.logger = logging.getLogger(__name__)

    def create_registration(self, event: Dict[str, Any], registration_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Register an attendee for an event.

        Args:
            event (Dict[str, Any]): Event record the attendee registers for
            registration_data (Dict[str, Any]): name, email, optional phone
                and location

        Returns:
            Dict[str, Any]: Creation result with the stored registration and
            its check-in payload
        """
        name = (registration_data.get('name') or '').strip()
        email = (registration_data.get('email') or '').strip().lower()

        if not name or not email:
            return {'success': False, 'error': 'Name and email are required', 'error_type': 'validation_error'}

        if not EMAIL_PATTERN.match(email):
            return {'success': False, 'error': 'Invalid email format', 'error_type': 'validation_error'}

        if event.get('status') != STATUS_ACTIVE:
            return {'success': False, 'error': 'Event is not accepting registrations', 'error_type': 'event_closed'}

        registration_id = str(uuid.uuid4())

        try:
            payload = self.qr_codec.encode_payload(event['id'], registration_id)
            qr_image = self.qr_codec.generate_qr_image(payload)
        except Exception as e:
            self.logger.error(f"QR code generation failed for registration {registration_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to generate QR code', 'error_type': 'system_error'}

        try:
            # Duplicate and capacity checks share the write lock with the insert
            with self.db.transaction(immediate=True) as conn:
                existing = conn.execute(
                    "SELECT id FROM registrations WHERE event_id = ? AND email = ?",
                    (event['id'], email)
                ).fetchone()
                if existing:
                    return {'success': False, 'error': 'You are already registered for this event',
                            'error_type': 'duplicate_registration'}

                if event.get('max_attendees'):
                    count = conn.execute(
                        "SELECT COUNT(*) FROM registrations WHERE event_id = ?",
                        (event['id'],)
                    ).fetchone()[0]
                    if count >= event['max_attendees']:
                        return {'success': False, 'error': 'Event is full', 'error_type': 'event_full'}

                conn.execute(
                    """INSERT INTO registrations (id, event_id, name, email, phone, location, qr_code)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (registration_id, event['id'], name, email,
                     registration_data.get('phone'), registration_data.get('location'), qr_image)
                )

        except sqlite3.IntegrityError:
            return {'success': False, 'error': 'You are already registered for this event',
                    'error_type': 'duplicate_registration'}
        except Exception as e:
            self.logger.error(f"Registration failed for event {event['id']}: {str(e)}")
            return {'success': False, 'error': 'Failed to create registration', 'error_type': 'system_error'}

        self.logger.info(f"Registration {registration_id} created for event {event['id']}")
        return {
            'success': True,
            'registration': self.get_registration_by_id(registration_id),
            'qr_data': payload
        }

    def get_registration(self, registration_id: str, event_id: str) -> Optional[Dict[str, Any]]:
        """Look up a registration scoped to one event."""
        return self.db.execute_query(
            "SELECT * FROM registrations WHERE id = ? AND event_id = ?",
            (registration_id, event_id),
            fetch_all=False
        )

    def get_registration_by_id(self, registration_id: str) -> Optional[Dict[str, Any]]:
        return self.db.execute_query(
            "SELECT * FROM registrations WHERE id = ?",
            (registration_id,),
            fetch_all=False
        )

    def count_registrations(self, event_id: str) -> int:
        result = self.db.execute_query(
            "SELECT COUNT(*) AS total FROM registrations WHERE event_id = ?",
            (event_id,),
            fetch_all=False
        )
        return result['total'] if result else 0

    def mark_verified(self, registration_id: str, event_id: str) -> bool:
        """
        Set the verified flag if, and only if, it is currently unset.

        The condition and the write are one statement under the database
        write lock, so among concurrent callers for the same registration
        exactly one sees a changed row.

        Args:
            registration_id (str): Registration ID
            event_id (str): Event the registration must belong to

        Returns:
            bool: True if this call performed the transition, False if the
            registration was already verified (or does not exist)
        """
        with self.db.transaction(immediate=True) as conn:
            cursor = conn.execute(
                """UPDATE registrations SET verified = 1
                   WHERE id = ? AND event_id = ? AND verified = 0""",
                (registration_id, event_id)
            )
            return cursor.rowcount == 1

    def set_verification(self, registration_id: str, organizer_id: str, verified: bool) -> Dict[str, Any]:
        """
        Organizer override of a registration's verified flag.

        Args:
            registration_id (str): Registration ID
            organizer_id (str): Organizer who must own the registration's event
            verified (bool): New flag value

        Returns:
            Dict[str, Any]: Update result
        """
        try:
            updated = self.db.execute_update(
                """UPDATE registrations SET verified = ?
                   WHERE id = ? AND event_id IN (SELECT id FROM events WHERE organizer_id = ?)""",
                (1 if verified else 0, registration_id, organizer_id)
            )
            if not updated:
                return {'success': False, 'error': 'Registration not found or unauthorized'}

            self.logger.info(f"Registration {registration_id} verification set to {bool(verified)} by organizer {organizer_id}")
            return {'success': True, 'registration': public_fields(self.get_registration_by_id(registration_id))}

        except Exception as e:
            self.logger.error(f"Failed to update verification for {registration_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to update verification status'}
