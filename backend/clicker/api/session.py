from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from clicker.errors import SessionStateError
from clicker.services.session.registry import get_registry


session_api = Blueprint('session_api', __name__)


@session_api.route('', methods=['GET'])
@login_required
def get_session_state():
    payload = get_registry().snapshot(current_user.id)
    cfg = current_app.config
    payload['limits'] = {
        'min_duration_seconds': cfg.get('MIN_DURATION_SEC', 1.0),
        'max_duration_seconds': cfg.get('MAX_DURATION_SEC', 10.0),
        'tick_interval_seconds': cfg.get('TICK_INTERVAL_SEC', 0.01),
    }
    return jsonify(payload)


@session_api.route('/duration', methods=['PUT'])
@login_required
def set_duration():
    data = request.get_json(silent=True) or {}
    if 'duration_seconds' not in data:
        return jsonify({'error': 'duration_seconds is required'}), 400
    registry = get_registry()
    controller = registry.for_user(current_user.id)
    try:
        controller.set_duration(data['duration_seconds'])
    except SessionStateError as exc:
        return jsonify({'error': str(exc)}), 409
    except ValueError as exc:
        return jsonify({'error': str(exc)}), 400
    return jsonify(registry.snapshot(current_user.id))


@session_api.route('/start', methods=['POST'])
@login_required
def start_session():
    registry = get_registry()
    controller = registry.for_user(current_user.id)
    replaced = controller.is_ticking
    controller.start()
    current_app.logger.info(
        f"[start-request] user={current_user.id} generation={controller.generation} replaced={replaced}"
    )
    registry.publish(current_user.id)
    return jsonify(registry.snapshot(current_user.id))


@session_api.route('/tap', methods=['POST'])
@login_required
def tap():
    controller = get_registry().for_user(current_user.id)
    if not controller.tap():
        return jsonify({'error': 'No game in progress', 'state': controller.state.value}), 409
    return jsonify({'score': controller.score, 'remaining_seconds': controller.remaining_seconds})


@session_api.route('/replay', methods=['POST'])
@login_required
def replay():
    data = request.get_json(silent=True) or {}
    registry = get_registry()
    controller = registry.for_user(current_user.id)
    try:
        controller.replay(restart=data.get('restart') is True)
    except SessionStateError as exc:
        return jsonify({'error': str(exc)}), 409
    registry.publish(current_user.id)
    return jsonify(registry.snapshot(current_user.id))


@session_api.route('/history', methods=['GET'])
@login_required
def get_history():
    registry = get_registry()
    registry.for_user(current_user.id)
    view = registry.reporter.view_for(current_user.id)
    if view is None:
        return jsonify({'generation': None, 'average_clicks_per_second': 0.0, 'entries': []})
    return jsonify(view.to_dict())
