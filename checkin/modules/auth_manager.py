"""
Authentication Manager Module - Event Check-in Service

This module handles organizer accounts: creation with password policy checks,
credential verification with werkzeug password hashes, and temporary lockout
after repeated failed logins. The authenticated organizer's ID is what the
HTTP layer hands to the verification service on the organizer path.

Features:
- Organizer account creation
- Password hashing and verification
- Password and email validation
- Failed login tracking and lockout
"""

from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime, timedelta
from typing import Dict, Any, Optional
import logging
import re
import sqlite3
import uuid


class AuthManager:
    """
    Organizer authentication for the check-in service.
    """

    def __init__(self, database_manager, password_min_length: int = 8,
                 max_login_attempts: int = 5, lockout_minutes: int = 15):
        """
        Initialize the authentication manager with database connection.

        Args:
            database_manager: Database manager instance
            password_min_length (int): Minimum accepted password length
            max_login_attempts (int): Failed logins before lockout
            lockout_minutes (int): Lockout duration
        """
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

        self.security_config = {
            'password_min_length': password_min_length,
            'max_login_attempts': max_login_attempts,
            'lockout_duration_minutes': lockout_minutes,
        }

        # Failed login attempts tracking, keyed by email
        self.failed_attempts = {}

    def create_organizer(self, email: str, password: str, full_name: str) -> Dict[str, Any]:
        """
        Create a new organizer account.

        Args:
            email (str): Login email
            password (str): Plain-text password
            full_name (str): Display name

        Returns:
            Dict[str, Any]: Creation result
        """
        email = (email or '').strip().lower()
        full_name = (full_name or '').strip()

        validation_result = self._validate_user_data(email, password, full_name)
        if not validation_result['valid']:
            return {'success': False, 'error': validation_result['error']}

        try:
            user_id = str(uuid.uuid4())
            self.db.execute_update(
                "INSERT INTO users (id, email, password_hash, full_name) VALUES (?, ?, ?, ?)",
                (user_id, email, generate_password_hash(password), full_name)
            )

            self.logger.info(f"Organizer created successfully: {email} (ID: {user_id})")
            return {
                'success': True,
                'user': {'id': user_id, 'email': email, 'full_name': full_name}
            }

        except sqlite3.IntegrityError:
            return {'success': False, 'error': 'Email address already exists'}
        except Exception as e:
            self.logger.error(f"Organizer creation failed for {email}: {str(e)}")
            return {'success': False, 'error': 'Failed to create user account'}

    def authenticate(self, email: str, password: str, ip_address: str = None) -> Optional[Dict[str, Any]]:
        """
        Verify organizer credentials.

        Args:
            email (str): Login email
            password (str): Plain-text password
            ip_address (str): Client IP address, for logging

        Returns:
            Dict[str, Any]: Organizer information if authenticated, None otherwise
        """
        email = (email or '').strip().lower()
        try:
            if self._is_account_locked(email):
                self.logger.warning(f"Authentication attempt for locked account: {email}")
                return None

            user = self.db.execute_query(
                "SELECT * FROM users WHERE email = ? AND is_active = 1",
                (email,),
                fetch_all=False
            )

            if not user or not check_password_hash(user['password_hash'], password or ''):
                self._record_failed_attempt(email, ip_address)
                return None

            self._clear_failed_attempts(email)
            self.logger.info(f"Organizer authenticated successfully: {email}")

            return {
                'id': user['id'],
                'email': user['email'],
                'full_name': user['full_name']
            }

        except Exception as e:
            self.logger.error(f"Authentication error for {email}: {str(e)}")
            return None

    def _validate_user_data(self, email: str, password: str, full_name: str) -> Dict[str, Any]:
        if not full_name:
            return {'valid': False, 'error': 'Full name is required'}

        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, email):
            return {'valid': False, 'error': 'Invalid email address format'}

        return self._validate_password(password)

    def _validate_password(self, password: str) -> Dict[str, Any]:
        """
        Validate password against security requirements.

        Args:
            password (str): Password to validate

        Returns:
            Dict[str, Any]: Validation result
        """
        if not password:
            return {'valid': False, 'error': 'Password is required'}

        min_length = self.security_config['password_min_length']
        if len(password) < min_length:
            return {'valid': False, 'error': f'Password must be at least {min_length} characters long'}

        if not re.search(r'[A-Za-z]', password) or not re.search(r'\d', password):
            return {'valid': False, 'error': 'Password must contain letters and numbers'}

        return {'valid': True}

    def _is_account_locked(self, email: str) -> bool:
        if email not in self.failed_attempts:
            return False

        attempt_data = self.failed_attempts[email]

        # Check if lockout period has expired
        if datetime.now() - attempt_data['last_attempt'] > timedelta(minutes=self.security_config['lockout_duration_minutes']):
            del self.failed_attempts[email]
            return False

        return attempt_data['count'] >= self.security_config['max_login_attempts']

    def _record_failed_attempt(self, email: str, ip_address: str = None) -> None:
        if email not in self.failed_attempts:
            self.failed_attempts[email] = {'count': 0, 'last_attempt': datetime.now()}

        self.failed_attempts[email]['count'] += 1
        self.failed_attempts[email]['last_attempt'] = datetime.now()

        self.logger.warning(f"Failed login attempt {self.failed_attempts[email]['count']} for {email} from {ip_address}")

    def _clear_failed_attempts(self, email: str) -> None:
        self.failed_attempts.pop(email, None)
