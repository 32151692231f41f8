# Overview: Flask API routes for cash register operations; parses input and returns JSON responses.

"""
Cash Register API Routes

- GET  /api/registers/current          open register (or null)
- POST /api/registers/open             {"openingAmount": "100.00", "notes"?}
- POST /api/registers/close            {"countedAmount": "250.00", "notes"?}
- POST /api/registers/movements        {"type": "SUPPLY"|"WITHDRAW", "amount": "20.00", "reason"?}
- GET  /api/registers/<id>/summary     expected cash and sales breakdown
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import PdvError
from ..services import register_service
from ..validation import parse_amount_cents


registers_bp = Blueprint("registers", __name__, url_prefix="/api/registers")


@registers_bp.get("/current")
@require_auth
def current_register_route():
    register = register_service.get_open_register()
    return jsonify({"register": register.to_dict() if register else None}), 200


@registers_bp.get("/")
@registers_bp.get("")
@require_auth
def list_registers_route():
    limit = request.args.get("limit", 20, type=int)
    registers = register_service.list_registers(limit=max(1, min(limit, 100)))
    return jsonify({"registers": [r.to_dict() for r in registers]}), 200


@registers_bp.post("/open")
@require_auth
def open_register_route():
    """
    Open the cash register.

    Also opens a shift for the operator when they have none.

    Returns:
        201: Register opened
        400: Invalid amount
        409: A register is already open
    """
    try:
        data = request.get_json(silent=True) or {}
        opening_cents = parse_amount_cents(data.get("openingAmount", "0"), "openingAmount")

        register = register_service.open_register(
            opening_cents,
            operator_id=g.current_operator.id,
            notes=data.get("notes"),
        )
        shift = register_service.get_open_shift(g.current_operator.id)

        return jsonify({
            "register": register.to_dict(),
            "shift": shift.to_dict() if shift else None,
        }), 201

    except PdvError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to open register")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.post("/close")
@require_auth
def close_register_route():
    try:
        data = request.get_json(silent=True) or {}
        counted_cents = parse_amount_cents(data.get("countedAmount"), "countedAmount")

        register = register_service.close_register(
            counted_cents,
            operator_id=g.current_operator.id,
            notes=data.get("notes"),
        )
        return jsonify({"register": register.to_dict()}), 200

    except PdvError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close register")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.post("/movements")
@require_auth
def record_movement_route():
    try:
        data = request.get_json(silent=True) or {}
        movement = register_service.record_movement(
            (data.get("type") or "").upper(),
            parse_amount_cents(data.get("amount"), "amount", allow_zero=False),
            operator_id=g.current_operator.id,
            reason=data.get("reason"),
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except PdvError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record cash movement")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.get("/<int:register_id>/summary")
@require_auth
def register_summary_route(register_id: int):
    try:
        return jsonify(register_service.get_register_summary(register_id)), 200
    except PdvError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build register summary")
        return jsonify({"error": "Internal server error"}), 500
