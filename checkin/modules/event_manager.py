"""
Event Manager Module - Event Check-in Service

This module handles event records: creation by organizers, the lookups the
verification pipeline needs (by id, by id and owner, by public slug), status
changes and owner-scoped deletion. Deleting an event removes its
registrations through the database cascade.
"""

from typing import Dict, Any, Optional
import logging
import re
import secrets
import uuid

STATUS_ACTIVE = 'ACTIVE'
STATUS_ENDED = 'ENDED'
STATUS_CANCELLED = 'CANCELLED'
EVENT_STATUSES = (STATUS_ACTIVE, STATUS_ENDED, STATUS_CANCELLED)


class EventManager:
    """
    Event store for the check-in service.
    """

    def __init__(self, database_manager):
        """
        Initialize the event manager with database connection.

        Args:
            database_manager: Database manager instance
        """
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

    def create_event(self, organizer_id: str, event_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a new event owned by an organizer.

        Args:
            organizer_id (str): Owning organizer's user ID
            event_data (Dict[str, Any]): title, description, date, time,
                location and optional max_attendees

        Returns:
            Dict[str, Any]: Creation result with the stored event
        """
        try:
            title = (event_data.get('title') or '').strip()
            if not title:
                return {'success': False, 'error': 'Missing required field: title'}

            max_attendees = event_data.get('max_attendees')
            if max_attendees in ('', None):
                max_attendees = None
            else:
                try:
                    max_attendees = int(max_attendees)
                except (TypeError, ValueError):
                    return {'success': False, 'error': 'max_attendees must be a whole number'}
                if max_attendees < 1:
                    return {'success': False, 'error': 'max_attendees must be at least 1'}

            event_id = str(uuid.uuid4())
            slug = self._generate_slug(title)

            self.db.execute_update(
                """INSERT INTO events
                   (id, slug, title, description, date, time, location, status, max_attendees, organizer_id)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (event_id, slug, title, event_data.get('description'), event_data.get('date'),
                 event_data.get('time'), event_data.get('location'), STATUS_ACTIVE,
                 max_attendees, organizer_id)
            )

            self.logger.info(f"Event created: {event_id} ({slug}) by organizer {organizer_id}")
            return {'success': True, 'event': self.get_event(event_id)}

        except Exception as e:
            self.logger.error(f"Event creation failed: {str(e)}")
            return {'success': False, 'error': 'Failed to create event'}

    def _generate_slug(self, title: str) -> str:
        base = re.sub(r'[^a-z0-9]+', '-', title.lower()).strip('-')[:80] or 'event'
        slug = base
        while self.get_event_by_slug(slug):
            slug = f"{base}-{secrets.token_hex(3)}"
        return slug

    def get_event(self, event_id: str) -> Optional[Dict[str, Any]]:
        """Look up an event by ID. Storage errors propagate to the caller."""
        return self.db.execute_query(
            "SELECT * FROM events WHERE id = ?",
            (event_id,),
            fetch_all=False
        )

    def get_event_for_owner(self, event_id: str, organizer_id: str) -> Optional[Dict[str, Any]]:
        """Look up an event by ID, only if it belongs to the given organizer."""
        return self.db.execute_query(
            "SELECT * FROM events WHERE id = ? AND organizer_id = ?",
            (event_id, organizer_id),
            fetch_all=False
        )

    def get_event_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        return self.db.execute_query(
            "SELECT * FROM events WHERE slug = ?",
            (slug,),
            fetch_all=False
        )

    def update_status(self, event_id: str, organizer_id: str, status: str) -> Dict[str, Any]:
        """
        Change an event's lifecycle status.

        Args:
            event_id (str): Event ID
            organizer_id (str): Organizer requesting the change
            status (str): One of ACTIVE, ENDED, CANCELLED

        Returns:
            Dict[str, Any]: Update result
        """
        if status not in EVENT_STATUSES:
            return {'success': False, 'error': f'Invalid status: {status}'}

        try:
            updated = self.db.execute_update(
                "UPDATE events SET status = ? WHERE id = ? AND organizer_id = ?",
                (status, event_id, organizer_id)
            )
            if not updated:
                return {'success': False, 'error': 'Event not found or unauthorized'}

            self.logger.info(f"Event {event_id} status changed to {status}")
            return {'success': True, 'event': self.get_event(event_id)}

        except Exception as e:
            self.logger.error(f"Failed to update status for event {event_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to update event status'}

    def delete_event(self, event_id: str, organizer_id: str) -> Dict[str, Any]:
        """Delete an event and, by cascade, all of its registrations."""
        try:
            deleted = self.db.execute_update(
                "DELETE FROM events WHERE id = ? AND organizer_id = ?",
                (event_id, organizer_id)
            )
            if not deleted:
                return {'success': False, 'error': 'Event not found or unauthorized'}

            self.logger.info(f"Event {event_id} deleted by organizer {organizer_id}")
            return {'success': True}

        except Exception as e:
            self.logger.error(f"Failed to delete event {event_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to delete event'}
