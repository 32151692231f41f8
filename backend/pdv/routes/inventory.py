# Overview: Flask API routes for stock reads.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth
from ..errors import PdvError
from ..services import stock_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/low-stock")
@require_auth
def low_stock_route():
    products = stock_service.get_low_stock_products()
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@inventory_bp.get("/products/<int:product_id>/movements")
@require_auth
def product_movements_route(product_id: int):
    try:
        limit = max(1, min(request.args.get("limit", 100, type=int), 500))
        movements = stock_service.get_product_movements(product_id, limit=limit)
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except PdvError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load stock movements")
        return jsonify({"error": "Internal server error"}), 500
