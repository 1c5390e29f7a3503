import hmac
import logging
import os
from collections import namedtuple
from datetime import datetime, timezone

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS

from config import config
from mailer import build_sender
from reminders import FinderError, run_reminders
from task_store import (
    SupabaseIdentityResolver,
    SupabasePreferenceStore,
    SupabaseTaskStore,
    create_supabase_client,
)

logger = logging.getLogger(__name__)

# Collaborators of a reminder run
ReminderServices = namedtuple('ReminderServices', 'store preferences identities sender')

CORS_ALLOW_HEADERS = ['authorization', 'x-client-info', 'apikey', 'content-type']


def configure_logging(level):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


def build_services(settings):
    """Wire the Supabase store and the configured mail backend."""
    client = create_supabase_client(settings.get('SUPABASE_URL'), settings.get('SUPABASE_SERVICE_ROLE_KEY'))
    return ReminderServices(
        store=SupabaseTaskStore(client),
        preferences=SupabasePreferenceStore(client),
        identities=SupabaseIdentityResolver(client),
        sender=build_sender(settings),
    )


def create_app(config_name=None, services=None):
    app = Flask(__name__)

    # Load configuration based on environment
    env = config_name or os.getenv('FLASK_ENV', 'development')
    app.config.from_object(config.get(env, config['default']))

    if not app.config.get('TESTING'):
        configure_logging(app.config.get('LOG_LEVEL'))

    app.extensions['reminders'] = services or build_services(app.config)

    # The trigger is called by schedulers and the dashboard; any origin may call it
    CORS(app, resources={
        r"/reminders": {
            "origins": "*",
            "send_wildcard": True,
            "methods": ["POST", "OPTIONS"],
            "allow_headers": CORS_ALLOW_HEADERS,
        }
    })

    register_routes(app)
    return app


def _authorized():
    secret = current_app.config.get('REMINDERS_CRON_SECRET')
    if not secret:
        return True
    header = request.headers.get('Authorization', '')
    provided = header[7:] if header.startswith('Bearer ') else ''
    return hmac.compare_digest(provided.encode(), secret.encode())


def register_routes(app):

    @app.route('/healthz')
    def healthz():
        return jsonify({'ok': True, 'time': datetime.now(timezone.utc).isoformat()}), 200

    @app.route('/reminders', methods=['POST', 'OPTIONS'])
    def send_reminders():
        """Run one reminder pass. Returns a JSON summary of what was sent."""
        if request.method == 'OPTIONS':
            return 'ok', 200

        if not _authorized():
            return jsonify({'error': 'Unauthorized'}), 401

        services = current_app.extensions['reminders']
        try:
            summary = run_reminders(
                services.store,
                services.preferences,
                services.identities,
                services.sender,
                app_url=current_app.config['APP_ORIGIN'],
                max_workers=current_app.config.get('REMINDER_MAX_WORKERS', 4),
            )
        except FinderError as e:
            logger.error("Error in reminders run: %s", e)
            return jsonify({'error': str(e)}), 500

        return jsonify({
            'success': True,
            'message': 'Processed reminders successfully',
            'details': summary.to_details(),
        }), 200

    # Error handlers
    @app.errorhandler(404)
    def page_not_found(e):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def internal_server_error(e):
        return jsonify({'error': 'Internal server error'}), 500


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    create_app().run(host='0.0.0.0', port=port, debug=os.environ.get('FLASK_ENV') != 'production')
