"""Public endpoints: deal listing, blog posts and affiliate redirects.

Deals are read from the store on every request and filtered with pandas;
the catalog is small enough that no caching layer is kept.
"""

import logging
from typing import Any, Dict

from flask import Blueprint, Response, current_app, jsonify, redirect, render_template, request

from deals.catalog import (
    SORT_FIELDS,
    DealFilters,
    available_brands,
    deals_frame,
    filter_deals,
    frame_to_records,
    sort_deals,
)
from deals.logging_config import log_deal_event
from deals.redirect import RedirectPlan, build_redirect_plan
from deals.store import DealStore
from deals.url_validation import is_marketplace_url
from web.config import STORE_EXTENSION

__all__ = ["api", "redirects"]

logger = logging.getLogger(__name__)

# Create blueprint for API
api = Blueprint("api", __name__, url_prefix="/api")

# Outbound deal links live at the site root (/go)
redirects = Blueprint("redirects", __name__)


def _store() -> DealStore:
    return current_app.extensions[STORE_EXTENSION]


def _post_to_json(post) -> Dict[str, Any]:
    data = post.to_dict()
    data["id"] = post.id
    return data


# ---------- DEALS ----------


@api.route("/deals", methods=["GET"])
def list_deals() -> Response:
    """Filtered, sorted deal list.

    Query params: ``q``, ``new``, ``used``, ``brand`` (repeatable or
    comma-separated), ``top_brands``, ``min_price``, ``max_price``,
    ``suction_power``, ``self_emptying``, ``has_mop``, ``high_suction``,
    ``best_value``, ``sort`` and ``direction`` (``asc``/``desc``).
    """
    sort_field = request.args.get("sort")
    direction = request.args.get("direction", "asc")
    if sort_field and sort_field not in SORT_FIELDS:
        return jsonify({"error": f"sort must be one of: {', '.join(SORT_FIELDS)}"}), 400
    if direction not in ("asc", "desc"):
        return jsonify({"error": "direction must be 'asc' or 'desc'"}), 400

    df = deals_frame(_store().list_products())
    filtered = filter_deals(df, DealFilters.from_args(request.args))
    if sort_field:
        filtered = sort_deals(filtered, sort_field, direction)

    deals = frame_to_records(filtered)
    return jsonify({
        "deals": deals,
        "count": len(deals),
        "total": len(df),
    })


@api.route("/brands", methods=["GET"])
def list_brands() -> Response:
    """Brands present in the catalog, most common first."""
    df = deals_frame(_store().list_products())
    return jsonify({"brands": available_brands(df)})


# ---------- BLOG ----------


@api.route("/posts", methods=["GET"])
def list_posts() -> Response:
    posts = _store().list_posts()
    return jsonify({"posts": [_post_to_json(p) for p in posts]})


@api.route("/posts/<slug>", methods=["GET"])
def get_post(slug: str) -> Response:
    post = _store().find_post_by_slug(slug)
    if post is None:
        return jsonify({"error": f"No post with slug '{slug}'"}), 404
    return jsonify(_post_to_json(post))


# ---------- HEALTH ----------


@api.route("/health", methods=["GET"])
def health() -> Response:
    if _store().check_connection():
        return jsonify({"status": "ok"})
    return jsonify({"status": "error", "error": "Data store unavailable"}), 502


# ---------- REDIRECTS ----------


def _follow_plan(plan: RedirectPlan) -> Response:
    """302 straight to the tagged URL on desktop; the deep-link page on mobile."""
    log_deal_event("deal_click", {
        "message": f"Deal click ({plan.platform.value})",
        "platform": plan.platform.value,
        "product_id": plan.product_id,
        "url": plan.tagged_url,
    })
    if not plan.is_mobile:
        return redirect(plan.tagged_url, code=302)
    return render_template("redirect.html", plan=plan)


@redirects.route("/go", methods=["GET"])
def go() -> Response:
    """Send the visitor to a deal URL carrying our affiliate tag."""
    deal_url = request.args.get("url", "").strip()
    if not deal_url:
        return jsonify({"error": "url is required"}), 400
    if not is_marketplace_url(deal_url):
        return jsonify({"error": "Not an Amazon URL"}), 400

    plan = build_redirect_plan(deal_url, request.headers.get("User-Agent", ""))
    return _follow_plan(plan)


@redirects.route("/go/<model_number>", methods=["GET"])
def go_to_model(model_number: str) -> Response:
    """Redirect to the stored deal for a model number."""
    product = _store().find_by_model_number(model_number)
    if product is None or not product.get("deal_url"):
        return jsonify({"error": f"No deal for model '{model_number}'"}), 404

    plan = build_redirect_plan(product["deal_url"], request.headers.get("User-Agent", ""))
    return _follow_plan(plan)
