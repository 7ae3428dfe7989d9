import logging
from datetime import datetime, timezone

from dateutil.parser import parse

import permissions
from models import Product
from supabase_client import get_client

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5
PRODUCT_FIELDS = ("name", "category", "production_date")


def list_products(user, farmer_id=None):
    """Fetch the products ``user`` may see, newest first.

    Farmers only ever get their own rows. Employees get every farmer's rows
    joined with the owner's display name, optionally narrowed to one farmer.
    """
    if not permissions.is_allowed(user, permissions.VIEW_PRODUCTS):
        raise PermissionError("You do not have access to products")

    table = get_client().table("products")
    if permissions.is_allowed(user, permissions.VIEW_ALL_PRODUCTS):
        query = table.select("*, profiles(full_name)")
        if farmer_id:
            query = query.eq("farmer_id", farmer_id)
    else:
        query = table.select("*").eq("farmer_id", user.id)

    response = query.order("created_at", desc=True).execute()
    return [Product.from_supabase(row) for row in response.data or []]


def get_product(product_id):
    response = get_client().table("products").select("*").eq("id", product_id).limit(1).execute()
    return Product.from_supabase(response.data[0]) if response.data else None


def validate_product_form(form):
    # gets and cleans inputs below
    data = {field: (form.get(field) or "").strip() for field in PRODUCT_FIELDS}

    if not all(data.values()):
        raise ValueError("Name, category and production date are required.")

    try:
        data["production_date"] = parse(data["production_date"]).date().isoformat()   # YYYY-MM-DD
    except (ValueError, OverflowError):
        raise ValueError("Production date must be a valid date.")
    return data


def create_product(user, form):
    data = validate_product_form(form)
    data["farmer_id"] = user.id     # the owner is always the signed in farmer

    response = get_client().table("products").insert(data).execute()
    logger.info("Farmer %s created product %s", user.id, data["name"])
    return Product.from_supabase(response.data[0]) if response.data else None


def update_product(user, product_id, form):
    """Update a product owned by ``user``; returns the number of rows changed."""
    data = validate_product_form(form)
    data["updated_at"] = datetime.now(timezone.utc).isoformat()

    # scoped by id AND farmer_id so another farmer's row is never touched
    response = (
        get_client().table("products")
        .update(data)
        .eq("id", product_id)
        .eq("farmer_id", user.id)
        .execute()
    )
    affected = len(response.data or [])
    if not affected:
        logger.warning("Update of product %s by %s matched no rows", product_id, user.id)
    return affected


def delete_product(user, product_id):
    response = (
        get_client().table("products")
        .delete()
        .eq("id", product_id)
        .eq("farmer_id", user.id)
        .execute()
    )
    affected = len(response.data or [])
    if affected:
        logger.info("Farmer %s deleted product %s", user.id, product_id)
    else:
        logger.warning("Delete of product %s by %s matched no rows", product_id, user.id)
    return affected


def filter_products(products, search="", category=""):
    # case-insensitive substring on name AND exact category; empty values don't filter
    needle = (search or "").lower()
    return [
        p for p in products
        if needle in p.name.lower() and (not category or p.category == category)
    ]


def categories(products):
    return sorted({p.category for p in products})


def summarize(products):
    recent = sorted(
        products,
        key=lambda p: (p.created_at is not None, p.created_at),
        reverse=True,
    )
    return {
        "total": len(products),
        "category_count": len(categories(products)),
        "latest": recent[0] if recent else None,
        "recent": recent[:RECENT_LIMIT],
    }
