# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

"""
Payment Settlement API Routes

DESIGN:
- An order is settled in one call with every tender (split payments)
- Amounts are decimal strings; the tenders must add up to the order
  total to the cent
- Change is only given for cash methods
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import PdvError, ValidationError
from ..services import payment_service


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.get("/methods")
@require_auth
def list_methods_route():
    methods = payment_service.list_payment_methods(active_only=True)
    return jsonify({"methods": [m.to_dict() for m in methods]}), 200


@payments_bp.post("/finalize")
@require_auth
def finalize_payment_route():
    """
    Settle an OPEN order.

    Request body:
    {
        "orderId": 42,
        "payments": [
            {"method": "CASH", "amount": "14.20", "received": "20.00"},
            {"method": "PIX", "amount": "10.00"}
        ]
    }

    Returns:
        200: {"order": {...}, "payments": [...]}
        400: Malformed tenders or unavailable method
        409: Order not OPEN, already paid, settled concurrently, or out of stock
        422: Tenders do not add up to the order total
    """
    try:
        data = request.get_json(silent=True) or {}
        order_id = data.get("orderId")
        if not isinstance(order_id, int) or isinstance(order_id, bool):
            raise ValidationError("orderId is required")

        result = payment_service.finalize_payment(
            order_id,
            data.get("payments"),
            operator_id=g.current_operator.id,
        )

        return jsonify({
            "order": result.order.to_dict(include_items=True),
            "payments": [p.to_dict() for p in result.payments],
        }), 200

    except PdvError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to finalize payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/orders/<int:order_id>")
@require_auth
def get_order_payments_route(order_id: int):
    payments = payment_service.get_order_payments(order_id)
    return jsonify({
        "order_id": order_id,
        "payments": [p.to_dict() for p in payments],
        "total_paid_cents": sum(p.amount_cents for p in payments),
    }), 200
