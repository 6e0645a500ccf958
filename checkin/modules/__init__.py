# Event Check-in Service - Modules Package
"""
Core modules of the event check-in service.
"""

# Module descriptions
MODULES = {
    'database_manager': 'SQLite connections, schema and transactions',
    'qr_codec': 'QR payload encoding, decoding and image rendering',
    'event_manager': 'Event records and ownership lookups',
    'registration_manager': 'Registrations and the verified transition',
    'auth_manager': 'Organizer accounts and authentication',
    'verification_service': 'Check-in pipeline',
    'checkin_controller': 'Check-in response shaping'
}


def get_module_info():
    """Get information about available modules"""
    return MODULES
