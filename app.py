"""
Event Check-in Service - Main Application

This module is the entry point of the event check-in service. It builds the
Flask application, wires the managers together and exposes the JSON API used
by the organizer dashboard scanner, the public self-registration pages and
the kiosk / verification-link check-in flow.

Features:
- Organizer login with session cookies
- Event creation
- Attendee self-registration with QR code issuance
- Organizer and public QR check-in
- Organizer verification override
"""

from flask import Blueprint, Flask, current_app, jsonify, request, session
from functools import wraps
import logging
from config import get_config
from checkin.modules.database_manager import DatabaseManager
from checkin.modules.qr_codec import QRCodec
from checkin.modules.event_manager import EventManager
from checkin.modules.registration_manager import RegistrationManager, public_fields
from checkin.modules.auth_manager import AuthManager
from checkin.modules.verification_service import VerificationService
from checkin.modules.checkin_controller import CheckInController

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
)
logger = logging.getLogger(__name__)

api = Blueprint('api', __name__)


def create_app(config_name=None, **overrides):
    """
    Build the Flask application.

    Args:
        config_name (str): Key of the ``config`` dictionary; FLASK_ENV when omitted
        **overrides: Values applied on top of the configuration class

    Returns:
        Flask: Configured application
    """
    app = Flask(__name__)
    config_class = get_config(config_name)
    app.config.from_object(config_class)
    app.config.update(overrides)
    config_class.init_app(app)

    logging.getLogger('checkin').setLevel(app.config['LOG_LEVEL'])

    # Initialize system components
    db_manager = DatabaseManager(app.config['DATABASE_PATH'], timeout=app.config['DATABASE_TIMEOUT'])
    qr_codec = QRCodec(box_size=app.config['QR_CODE_BOX_SIZE'], border=app.config['QR_CODE_BORDER'])
    event_manager = EventManager(db_manager)
    registration_manager = RegistrationManager(db_manager, qr_codec)
    verification_service = VerificationService(event_manager, registration_manager, qr_codec)

    app.extensions['checkin'] = {
        'db': db_manager,
        'qr_codec': qr_codec,
        'events': event_manager,
        'registrations': registration_manager,
        'auth': AuthManager(
            db_manager,
            password_min_length=app.config['PASSWORD_MIN_LENGTH'],
            max_login_attempts=app.config['MAX_LOGIN_ATTEMPTS'],
            lockout_minutes=app.config['LOGIN_LOCKOUT_MINUTES']
        ),
        'controller': CheckInController(verification_service, debug=app.config['VERIFY_DEBUG']),
    }

    app.register_blueprint(api)
    return app


def component(name):
    return current_app.extensions['checkin'][name]


def login_required(f):
    """Decorator to require an organizer session for API routes"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user_id' not in session:
            return jsonify({'success': False, 'error': 'Unauthorized'}), 401
        return f(*args, **kwargs)
    return decorated_function


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@api.route('/health')
def health():
    """Database liveness check"""
    try:
        component('db').ping()
        return jsonify({'service': 'event-checkin', 'status': 'healthy'}), 200
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        return jsonify({'service': 'event-checkin', 'status': 'unhealthy'}), 503


@api.route('/api/auth/register', methods=['POST'])
def register_organizer():
    """Create an organizer account"""
    data = _json_body()
    result = component('auth').create_organizer(
        data.get('email'), data.get('password'), data.get('full_name') or data.get('name')
    )
    if not result['success']:
        status = 409 if result['error'] == 'Email address already exists' else 400
        return jsonify(result), status
    return jsonify(result), 201


@api.route('/api/auth/login', methods=['POST'])
def login():
    """Organizer login"""
    data = _json_body()
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''

    if not email or not password:
        return jsonify({'success': False, 'error': 'Please provide both email and password.'}), 400

    user = component('auth').authenticate(email, password, ip_address=request.remote_addr)
    if not user:
        logger.warning(f"Failed login attempt for email: {email}")
        return jsonify({'success': False, 'error': 'Invalid email or password.'}), 401

    session.clear()
    session['user_id'] = user['id']
    session['full_name'] = user['full_name']
    logger.info(f"Organizer {email} logged in successfully")
    return jsonify({'success': True, 'user': user}), 200


@api.route('/api/auth/logout', methods=['POST'])
@login_required
def logout():
    """Organizer logout"""
    user_id = session.get('user_id')
    session.clear()
    logger.info(f"Organizer {user_id} logged out")
    return jsonify({'success': True, 'message': 'You have been logged out successfully.'}), 200


@api.route('/api/events', methods=['POST'])
@login_required
def create_event():
    """Create an event owned by the logged-in organizer"""
    result = component('events').create_event(session['user_id'], _json_body())
    if not result['success']:
        status = 500 if result['error'] == 'Failed to create event' else 400
        return jsonify(result), status
    return jsonify(result), 201


@api.route('/api/events/<event_id>/verify', methods=['POST'])
@login_required
def organizer_verify(event_id):
    """Dashboard scanner check-in"""
    try:
        data = _json_body()
        qr_data = data.get('qrData')
        if not qr_data:
            return jsonify({'success': False, 'error': 'QR data is required'}), 400

        body, status = component('controller').organizer_check_in(qr_data, event_id, session['user_id'])
        return jsonify(body), status

    except Exception as e:
        logger.error(f"Organizer check-in error: {str(e)}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500


@api.route('/api/registrations/<registration_id>/verify', methods=['POST'])
@login_required
def override_verification(registration_id):
    """Organizer sets a registration's verified flag directly"""
    data = _json_body()
    if not isinstance(data.get('verified'), bool):
        return jsonify({'success': False, 'error': 'verified must be true or false'}), 400

    result = component('registrations').set_verification(registration_id, session['user_id'], data['verified'])
    if not result['success']:
        status = 404 if result['error'] == 'Registration not found or unauthorized' else 500
        return jsonify(result), status
    return jsonify(result), 200


@api.route('/api/public/events/<slug>')
def public_event(slug):
    """Public event page data"""
    try:
        event = component('events').get_event_by_slug(slug)
        if not event:
            return jsonify({'success': False, 'error': 'Event not found'}), 404

        registered = component('registrations').count_registrations(event['id'])
        spots_left = None
        if event['max_attendees']:
            spots_left = max(event['max_attendees'] - registered, 0)

        return jsonify({
            'success': True,
            'event': {
                'id': event['id'],
                'slug': event['slug'],
                'title': event['title'],
                'description': event['description'],
                'date': event['date'],
                'time': event['time'],
                'location': event['location'],
                'status': event['status'],
                'max_attendees': event['max_attendees'],
                'registrations': registered,
                'spots_left': spots_left
            }
        }), 200

    except Exception as e:
        logger.error(f"Public event lookup error: {str(e)}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500


@api.route('/api/public/events/<slug>/register', methods=['POST'])
def public_register(slug):
    """Attendee self-registration"""
    try:
        event = component('events').get_event_by_slug(slug)
        if not event:
            return jsonify({'success': False, 'error': 'Event not found'}), 404

        result = component('registrations').create_registration(event, _json_body())
        if not result['success']:
            status = {
                'validation_error': 400,
                'event_closed': 400,
                'duplicate_registration': 409,
                'event_full': 409,
            }.get(result.get('error_type'), 500)
            return jsonify({'success': False, 'error': result['error']}), status

        registration = result['registration']
        verification_url = component('qr_codec').build_verification_url(
            current_app.config['PUBLIC_BASE_URL'], event['id'], registration['id']
        )
        return jsonify({
            'success': True,
            'registration': dict(public_fields(registration), qr_code=registration['qr_code']),
            'qrData': result['qr_data'],
            'verification_url': verification_url
        }), 201

    except Exception as e:
        logger.error(f"Registration error: {str(e)}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500


@api.route('/api/public/verify-registration', methods=['POST'])
def public_verify():
    """Kiosk / verification-link check-in"""
    try:
        data = _json_body()
        qr_data = data.get('qrData')
        event_id = data.get('eventId')
        if not qr_data or not event_id:
            return jsonify({'success': False, 'error': 'QR data and event ID are required'}), 400

        body, status = component('controller').public_check_in(qr_data, event_id)
        return jsonify(body), status

    except Exception as e:
        logger.error(f"Public check-in error: {str(e)}")
        return jsonify({'success': False, 'error': 'Verification failed'}), 500


@api.route('/api/public/verify/<event_id>/<registration_id>')
def public_verification_details(event_id, registration_id):
    """Registration shown on the verification link page"""
    try:
        registration = component('registrations').get_registration(registration_id, event_id)
        if not registration:
            return jsonify({'success': False, 'error': 'Registration not found'}), 404

        event = component('events').get_event(event_id)
        return jsonify({
            'success': True,
            'registration': public_fields(registration),
            'event': {
                'title': event['title'],
                'date': event['date'],
                'time': event['time'],
                'location': event['location'],
                'slug': event['slug']
            }
        }), 200

    except Exception as e:
        logger.error(f"Failed to fetch verification data: {str(e)}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500


if __name__ == '__main__':
    app = create_app()
    app.run(debug=app.config['DEBUG'], host='0.0.0.0', port=5000)
