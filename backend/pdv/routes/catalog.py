# Overview: Flask API routes for read-only catalog access.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth
from ..services import catalog_service


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


def _include_inactive() -> bool:
    return request.args.get("include_inactive", "false").lower() == "true"


@catalog_bp.get("/products")
@require_auth
def list_products_route():
    products = catalog_service.list_products(include_inactive=_include_inactive())
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@catalog_bp.get("/combos")
@require_auth
def list_combos_route():
    combos = catalog_service.list_combos(include_inactive=_include_inactive())
    return jsonify({"combos": [c.to_dict(include_items=True) for c in combos]}), 200


@catalog_bp.get("/modifier-groups")
@require_auth
def list_modifier_groups_route():
    """Active modifier groups; ?product_id= limits to groups offered for that product."""
    product_id = request.args.get("product_id", type=int)
    groups = catalog_service.list_modifier_groups(product_id=product_id)
    return jsonify({"modifier_groups": [grp.to_dict(include_modifiers=True) for grp in groups]}), 200
