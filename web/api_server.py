"""
Flask API server for Intune Assignments - serves assignment data via REST endpoints
"""

# Standard library imports
import os

# Third-party imports
from flask import Flask, jsonify, request, Response
from flask_cors import CORS
import jwt
import requests

# Local application imports
from intuneAssignments.analyzer.categories import CATEGORY_ENDPOINTS, CATEGORY_CHOICES
from intuneAssignments.graph.api_client import GraphAPIClient, GroupNotFoundError
from intuneAssignments.main import collect_assignments, count_assignments
from intuneAssignments.reports.generator import ReportGenerator
from intuneAssignments.selection_config import SelectionConfig

app = Flask(__name__)
CORS(app)


def _read_selection(data):
    """Validate the token and selection of a report request body.

    Returns:
        Tuple of (token, config, error response or None)
    """
    if not isinstance(data, dict):
        return None, None, (jsonify({'error': 'Request body must be a JSON object'}), 400)

    token = data.get('token')
    if not token or not isinstance(token, str):
        return None, None, (jsonify({'error': 'No token provided'}), 400)

    selection = SelectionConfig(data)
    is_valid, errors = selection.validate()
    if not is_valid:
        return None, None, (jsonify({'error': '; '.join(errors)}), 400)

    threads = data.get('threads', 1)
    if isinstance(threads, bool) or not isinstance(threads, int) or threads < 1:
        return None, None, (jsonify({'error': "'threads' must be a positive integer"}), 400)

    api_version = data.get('api_version')
    if api_version is not None and not isinstance(api_version, str):
        return None, None, (jsonify({'error': "'api_version' must be a string"}), 400)

    config = {
        'group': selection.group,
        'categories': selection.selected_categories(),
        'api_version': api_version,
        'threads': threads,
    }
    return token, config, None


def _collect(token: str, config: dict, log: list):
    def progress_callback(percent, message: str):
        if message:
            log.append(message)

    return collect_assignments(token, config, progress_callback=progress_callback)


def _collect_error(e: Exception, log: list):
    """Map a failed collection to the response both report routes return."""
    if isinstance(e, GroupNotFoundError):
        return jsonify({'error': str(e)}), 404
    if isinstance(e, ValueError):
        # Token rejected by the validation call
        return jsonify({'error': str(e)}), 401

    print(f"Error fetching assignments: {str(e)}")
    if isinstance(e, requests.exceptions.HTTPError) and e.response is not None:
        # Pass Graph's own status through (401, 403, 429, ...)
        return jsonify({'error': str(e), 'log': log}), e.response.status_code
    return jsonify({'error': str(e), 'log': log}), 502


# API Routes

@app.route('/api/categories', methods=['GET'])
def get_categories():
    """List the policy categories and the endpoint labels behind each"""
    return jsonify({
        'choices': CATEGORY_CHOICES,
        'categories': {
            category: [endpoint['categoryLabel'] for endpoint in endpoints]
            for category, endpoints in sorted(CATEGORY_ENDPOINTS.items())
        }
    })


@app.route('/api/validate-token', methods=['POST'])
def validate_token():
    """Validate a Microsoft Graph access token."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'valid': False, 'error': 'Request body must be a JSON object'}), 400

    token = data.get('token')
    if not token or not isinstance(token, str):
        return jsonify({'valid': False, 'error': 'No token provided'}), 400

    try:
        with GraphAPIClient(token) as client:
            is_valid, error_msg = client.validate_token()

        if is_valid:
            return jsonify({'valid': True})
        else:
            return jsonify({'valid': False, 'error': error_msg}), 401
    except Exception as e:
        return jsonify({'valid': False, 'error': str(e)}), 500


@app.route('/api/extract-tenant-id', methods=['POST'])
def extract_tenant_id():
    """Extract tenant ID from JWT token without full validation."""
    data = request.get_json(silent=True)
    token = data.get('token') if isinstance(data, dict) else None

    if not token or not isinstance(token, str):
        return jsonify({'tenant_id': None, 'error': 'No token provided'}), 400

    try:
        # Decode without verification to extract tenant ID
        decoded = jwt.decode(token, options={"verify_signature": False})
        tenant_id = decoded.get('tid')

        if tenant_id:
            return jsonify({'tenant_id': tenant_id})
        else:
            return jsonify({'tenant_id': None, 'error': 'No tenant ID found in token'}), 400
    except jwt.PyJWTError as e:
        return jsonify({'tenant_id': None, 'error': f'Failed to decode token: {str(e)}'}), 400


@app.route('/api/assignments', methods=['POST'])
def get_assignments():
    """Return the assignment records of a group as JSON."""
    token, config, error = _read_selection(request.get_json(silent=True))
    if error:
        return error

    log = []
    try:
        group, results = _collect(token, config, log)
    except (ValueError, requests.exceptions.RequestException) as e:
        return _collect_error(e, log)

    return jsonify({
        'group': group,
        'results': results,
        'assignments_count': count_assignments(results),
        'log': log,
    })


@app.route('/api/report', methods=['POST'])
def get_report():
    """Render the HTML report of a group's assignments."""
    token, config, error = _read_selection(request.get_json(silent=True))
    if error:
        return error

    log = []
    try:
        group, results = _collect(token, config, log)
    except (ValueError, requests.exceptions.RequestException) as e:
        return _collect_error(e, log)

    generator = ReportGenerator(token=token)
    report_html = generator.generate_html_report(results, group)

    return Response(report_html, mimetype='text/html')


def main():
    """Main entry point for the API server"""
    port = int(os.environ.get('PORT', 5000))
    debug = os.environ.get('DEBUG', 'false').lower() == 'true'

    print(f"\n{'='*60}")
    print(f"Intune Assignments API Server")
    print(f"{'='*60}")

    app.run(host='127.0.0.1', port=port, debug=debug)


if __name__ == '__main__':
    main()
