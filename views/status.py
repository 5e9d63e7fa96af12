# views/status.py

import logging

from flask import Blueprint, jsonify

from database import get_db
from repositories.novels_repo import count_novels

LOGGER = logging.getLogger(__name__)

status_bp = Blueprint('status', __name__)


@status_bp.route('/api/status', methods=['GET'])
def get_status():
    """
    Returns the current status of the application and database.
    """
    try:
        novel_count = count_novels(get_db())
    except Exception:
        LOGGER.error("Status check failed", exc_info=True)
        return jsonify({
            'status': 'error',
            'message': 'internal error'
        }), 500

    return jsonify({
        'status': 'ok',
        'novel_count': novel_count
    })
