# Overview: Flask API routes for dining tables and table sessions.

from flask import Blueprint, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import NotFoundError, PdvError
from ..services import table_service


tables_bp = Blueprint("tables", __name__, url_prefix="/api/tables")


@tables_bp.get("/")
@tables_bp.get("")
@require_auth
def list_tables_route():
    tables = table_service.list_tables()
    return jsonify({"tables": [t.to_dict() for t in tables]}), 200


@tables_bp.get("/sessions")
@require_auth
def list_sessions_route():
    sessions = table_service.list_open_sessions()
    return jsonify({"sessions": [s.to_dict() for s in sessions]}), 200


@tables_bp.get("/sessions/<int:session_id>")
@require_auth
def get_session_route(session_id: int):
    session = table_service.get_open_session(session_id)
    if session is None:
        e = NotFoundError(f"No open table session {session_id}")
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"session": session.to_dict()}), 200


@tables_bp.post("/<int:table_id>/sessions")
@require_auth
def open_session_route(table_id: int):
    try:
        session = table_service.open_session(table_id, g.current_operator.id)
        return jsonify({"session": session.to_dict()}), 201
    except PdvError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to open table session")
        return jsonify({"error": "Internal server error"}), 500


@tables_bp.post("/sessions/<int:session_id>/close")
@require_auth
def close_session_route(session_id: int):
    try:
        session = table_service.close_session(session_id, g.current_operator.id)
        return jsonify({"session": session.to_dict()}), 200
    except PdvError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close table session")
        return jsonify({"error": "Internal server error"}), 500
