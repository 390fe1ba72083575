"""JSON response envelope shared by the API blueprints."""
from flask import jsonify


def success(data=None, message='OK', status_code=200):
    return jsonify({'status': 'success', 'message': message, 'data': data}), status_code
