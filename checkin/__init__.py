# Event Check-in Service - App Package
"""
Main application package for the event check-in service.
This package contains the QR check-in pipeline and the stores it works with.
"""

__version__ = "1.0.0"
__description__ = "Event registration check-in service with QR code verification"

# Import core components for easy access
from .modules.database_manager import DatabaseManager
from .modules.qr_codec import QRCodec, ScanPayload, DecodeFailure
from .modules.event_manager import EventManager
from .modules.registration_manager import RegistrationManager
from .modules.auth_manager import AuthManager
from .modules.verification_service import VerificationService, VerificationOutcome, Requester
from .modules.checkin_controller import CheckInController

__all__ = [
    'DatabaseManager',
    'QRCodec',
    'ScanPayload',
    'DecodeFailure',
    'EventManager',
    'RegistrationManager',
    'AuthManager',
    'VerificationService',
    'VerificationOutcome',
    'Requester',
    'CheckInController'
]
