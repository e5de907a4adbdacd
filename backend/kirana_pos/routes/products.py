# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

# backend/kirana_pos/routes/products.py
"""
Product catalog routes.

current_stock is read-only here; stock changes go through /api/stock.
Barcode duplicates are reported as warnings, never rejected.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_owner, require_staff
from ..responses import SERVICE_ERRORS, error_response
from ..services import products_service

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _barcode_warning(product) -> dict | None:
    others = products_service.barcode_in_use(product.barcode, exclude_product_id=product.id)
    if not others:
        return None
    return {
        "message": "This barcode is already assigned to another product",
        "products": [{"id": p.id, "name": p.name} for p in others],
    }


@products_bp.get("")
@require_staff
def list_products():
    """
    List products with optional pagination.

    Query params:
    - status: active | inactive (optional)
    - category: str (optional)
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    return products_service.list_products(
        status=request.args.get("status") or None,
        category=request.args.get("category") or None,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.get("/search")
@require_staff
def search_products():
    products = products_service.search_products(request.args.get("q", ""))
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/barcode/<path:barcode>")
@require_staff
def lookup_barcode(barcode: str):
    """none / single / multiple; multiple lists every candidate."""
    try:
        return products_service.lookup_by_barcode(barcode).to_dict()
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to look up barcode")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_staff
def get_product(product_id: int):
    product = products_service.get_product(product_id)
    if not product:
        return jsonify({"error": "Product not found"}), 404
    return {"product": product.to_dict()}


@products_bp.post("")
@require_staff
def create_product():
    """
    Create a product.

    Body: catalog fields plus optional opening_stock, booked as a stock_in
    movement ("opening stock").
    """
    try:
        data = request.get_json(silent=True) or {}
        patch = {k: v for k, v in data.items() if k != "opening_stock"}
        product = products_service.create_product(
            patch=patch,
            opening_stock=data.get("opening_stock"),
            created_by=g.staff_id,
        )
        return {"product": product.to_dict(), "barcode_warning": _barcode_warning(product)}, 201
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_staff
def update_product(product_id: int):
    try:
        data = request.get_json(silent=True) or {}
        product = products_service.update_product(product_id, data)
        return {"product": product.to_dict(), "barcode_warning": _barcode_warning(product)}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_staff
@require_owner
def delete_product(product_id: int):
    """Soft delete (status -> inactive)."""
    try:
        product = products_service.delete_product(product_id)
        return {"product": product.to_dict()}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
