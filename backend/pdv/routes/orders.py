# Overview: Flask API routes for orders; parses input and returns JSON responses.

"""
Order API Routes

- POST /api/orders                    create an order from a cart
- GET  /api/orders                    list (?status=OPEN&register_id=1&limit=50&offset=0)
- GET  /api/orders/<id>               order with lines and modifiers
- GET  /api/orders/<id>/events        audit trail
- POST /api/orders/<id>/cancel        {"reason": "..."}
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import PdvError
from ..services import order_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("/")
@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Create an OPEN order from a cart.

    Request body:
    {
        "items": [
            {"itemType": "PRODUCT", "itemId": 1, "clientReference": "line-1", "quantity": 1,
             "modifiers": [{"modifierId": 3, "quantity": 1}]},
            {"itemType": "COMBO", "itemId": 2, "clientReference": "line-2", "quantity": 1}
        ],
        "orderType": "COUNTER",
        "discountType": "FIXED", "discountValue": "5.00",
        "serviceFeeType": "PERCENT", "serviceFeeValue": "10"
    }

    Returns:
        201: {"order": {...}, "next": "/api/payments/finalize"}
        400: Malformed cart, unknown item, or modifier rules violated
        409: Register closed or no open shift
    """
    try:
        order = order_service.place_order(request.get_json(silent=True), g.current_operator.id)
        return jsonify({
            "order": order.to_dict(include_items=True),
            "next": "/api/payments/finalize",
        }), 201

    except PdvError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/")
@orders_bp.get("")
@require_auth
def list_orders_route():
    try:
        limit = max(1, min(request.args.get("limit", 50, type=int), 200))
        offset = max(0, request.args.get("offset", 0, type=int))
        orders, total = order_service.list_orders(
            status=request.args.get("status"),
            register_id=request.args.get("register_id", type=int),
            limit=limit,
            offset=offset,
        )
        return jsonify({
            "orders": [o.to_dict() for o in orders],
            "total": total,
            "limit": limit,
            "offset": offset,
        }), 200

    except PdvError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        data = order.to_dict(include_items=True)
        data["payments"] = [p.to_dict() for p in order.payments]
        return jsonify({"order": data}), 200
    except PdvError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>/events")
@require_auth
def get_order_events_route(order_id: int):
    try:
        events = order_service.get_order_events(order_id)
        return jsonify({"events": [e.to_dict() for e in events]}), 200
    except PdvError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load order events")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
def cancel_order_route(order_id: int):
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.cancel_order(order_id, data.get("reason"), g.current_operator.id)
        return jsonify({"order": order.to_dict()}), 200

    except PdvError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500
