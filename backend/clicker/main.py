from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from clicker.errors import AuthError
from clicker.services import identity
from clicker.services.session.registry import get_registry

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Click Counter server!'})

@main.route('/signup', methods=['POST'])
def signup():
    data = request.get_json(silent=True) or {}
    try:
        identity.sign_up(data.get('email'), data.get('password'))
    except AuthError as exc:
        return jsonify({'error': str(exc)}), 400
    return jsonify({'user': current_user.to_dict()}), 201

@main.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    try:
        identity.sign_in(data.get('email'), data.get('password'))
    except AuthError as exc:
        return jsonify({'error': str(exc)}), 401
    return jsonify({'user': current_user.to_dict()})

@main.route('/logout', methods=['POST'])
@login_required
def logout():
    get_registry().drop(current_user.id)
    identity.sign_out()
    return jsonify({'message': 'Logged out successfully.'})

@main.route('/me')
def me():
    if identity.current_user_id() is None:
        return jsonify({'authenticated': False, 'user': None})
    return jsonify({'authenticated': True, 'user': current_user.to_dict()})
