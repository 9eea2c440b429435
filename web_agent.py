from flask import Flask, current_app, request, jsonify
import logging
from datetime import datetime, timezone
from functools import wraps

from fact_aggregators import environment_facts, network_facts, process_facts, safe_read, system_facts
from orchestration import kubernetes_info, pod_info
from platform_facts import PlatformFactsProvider

logger = logging.getLogger(__name__)

GREETING = 'Test realizado en oficinas de Redjar'

AVAILABLE_ROUTES = [
    '/',
    '/system',
    '/env',
    '/process',
    '/network',
    '/health',
    '/pod',
    '/k8s',
]


def now_iso():
    """Current UTC time as ISO-8601, taken fresh on every call"""
    return datetime.now(timezone.utc).isoformat()


def error_body(exc):
    return {
        'error': 'Something went wrong!',
        'message': str(exc),
        'timestamp': now_iso()
    }


def error_handler(f):
    """Decorator to turn endpoint failures into a generic 500 response"""
    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except Exception as e:
            logger.error(f"Error in {f.__name__}: {e}", exc_info=True)
            return jsonify(error_body(e)), 500
    return wrapper


def client_ip(req):
    """Client address, preferring proxy forwarding headers over the socket peer"""
    forwarded = req.headers.get('X-Forwarded-For', '')
    first = forwarded.split(',')[0].strip()
    if first:
        return first
    return req.remote_addr


def _provider():
    return current_app.config['FACTS_PROVIDER']


def _with_timestamp(data):
    body = dict(data)
    body['timestamp'] = now_iso()
    return body


def create_app(provider=None):
    """Build the Flask app serving snapshots read from ``provider``"""
    app = Flask(__name__)
    app.config['FACTS_PROVIDER'] = provider or PlatformFactsProvider()
    app.json.sort_keys = False

    @app.route('/')
    @error_handler
    def index():
        """Everything at once, plus what the caller sent us"""
        timestamp = now_iso()
        facts = _provider()
        response = {
            'timestamp': timestamp,
            'message': GREETING,
            'pod': pod_info(facts).summary(),
            'system': system_facts(facts).to_dict(),
            'environment': environment_facts(facts).to_dict(),
            'process': process_facts(facts).to_dict(),
            'network': network_facts(facts).to_dict(),
            'request': {
                'method': request.method,
                'url': request.full_path.rstrip('?'),
                'headers': dict(request.headers),
                'ip': client_ip(request),
                'userAgent': request.headers.get('User-Agent')
            }
        }
        return jsonify(response)

    @app.route('/system')
    @error_handler
    def system():
        return jsonify(_with_timestamp(system_facts(_provider()).to_dict()))

    @app.route('/env')
    @error_handler
    def env():
        return jsonify(_with_timestamp(environment_facts(_provider()).to_dict()))

    @app.route('/process')
    @error_handler
    def process():
        return jsonify(_with_timestamp(process_facts(_provider()).to_dict()))

    @app.route('/network')
    @error_handler
    def network():
        return jsonify(_with_timestamp(network_facts(_provider()).to_dict()))

    @app.route('/health')
    @error_handler
    def health():
        """Health check endpoint for container orchestration"""
        facts = _provider()
        process_info = process_facts(facts)
        return jsonify({
            'status': 'healthy',
            'timestamp': now_iso(),
            'uptime': process_info.uptime,
            'memory': process_info.memory_usage,
            'hostname': safe_read(facts, 'hostname')
        })

    @app.route('/pod')
    @error_handler
    def pod():
        return jsonify(_with_timestamp(pod_info(_provider()).to_dict()))

    @app.route('/k8s')
    @error_handler
    def k8s():
        # Name scan over the whole environment, not the /env allow-list
        return jsonify({
            'kubernetes': kubernetes_info(_provider()),
            'timestamp': now_iso()
        })

    @app.errorhandler(404)
    @app.errorhandler(405)
    def not_found(e):
        return jsonify({
            'error': 'Route not found',
            'availableRoutes': AVAILABLE_ROUTES,
            'timestamp': now_iso()
        }), 404

    @app.errorhandler(500)
    def internal_error(e):
        cause = getattr(e, 'original_exception', None) or e
        logger.error(f"Unhandled error on {request.path}: {cause}", exc_info=cause)
        return jsonify(error_body(cause)), 500

    return app
