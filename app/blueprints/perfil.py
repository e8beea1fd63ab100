"""Perfil blueprint - profile editor (JSON)."""
from flask import Blueprint, jsonify, g
from app.database import get_session
from app.middleware import require_login
from app.services.profile_service import get_profile, update_profile
from app.utils.http import request_payload

perfil_bp = Blueprint('perfil', __name__, url_prefix='/perfil')


@perfil_bp.route('', methods=['GET'])
@require_login
def show():
    """Current account profile (null until first saved)."""
    profile = get_profile(get_session(), g.session_ctx.user_id)
    return jsonify({'profile': profile.to_dict() if profile else None}), 200


@perfil_bp.route('', methods=['PUT', 'POST'])
@require_login
def save():
    """Create or update the profile."""
    profile = update_profile(get_session(), g.session_ctx.user_id, request_payload())
    return jsonify({'status': 'ok', 'profile': profile.to_dict()}), 200
