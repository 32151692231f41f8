# Overview: Flask API routes for operator shifts; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import PdvError
from ..services import register_service


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.get("/current")
@require_auth
def current_shift_route():
    shift = register_service.get_open_shift(g.current_operator.id)
    return jsonify({"shift": shift.to_dict() if shift else None}), 200


@shifts_bp.post("/open")
@require_auth
def open_shift_route():
    try:
        data = request.get_json(silent=True) or {}
        shift = register_service.open_shift(g.current_operator.id, note=data.get("note"))
        return jsonify({"shift": shift.to_dict()}), 201
    except PdvError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to open shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/close")
@require_auth
def close_shift_route():
    try:
        data = request.get_json(silent=True) or {}
        shift = register_service.close_shift(g.current_operator.id, note=data.get("note"))
        return jsonify({"shift": shift.to_dict()}), 200
    except PdvError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Internal server error"}), 500
