"""
Role and ownership decisions for every page.

Views, templates and guards all ask ``is_allowed`` instead of comparing roles
or farmer ids themselves. The Data Store queries are scoped by farmer_id as
well, so a check that slips past here still touches zero rows.
"""
from functools import wraps

from flask import current_app, redirect, url_for
from flask_login import current_user

from models import FARMER, EMPLOYEE

VIEW_PRODUCTS = "view_products"
VIEW_ALL_PRODUCTS = "view_all_products"
CREATE_PRODUCT = "create_product"
EDIT_PRODUCT = "edit_product"
DELETE_PRODUCT = "delete_product"
MANAGE_USERS = "manage_users"

ROLE_ACTIONS = {
    FARMER: {VIEW_PRODUCTS, CREATE_PRODUCT, EDIT_PRODUCT, DELETE_PRODUCT},
    EMPLOYEE: {VIEW_PRODUCTS, VIEW_ALL_PRODUCTS, MANAGE_USERS},
}

# actions that only make sense against a product the user owns
OWNER_ACTIONS = {EDIT_PRODUCT, DELETE_PRODUCT}


def is_allowed(user, action, product=None):
    if user is None or not getattr(user, "is_authenticated", False):
        return False

    # no resolved role means no access at all
    if action not in ROLE_ACTIONS.get(user.role, set()):
        return False

    if action in OWNER_ACTIONS:
        return product is not None and product.farmer_id == user.id

    return True


def employee_required(view):
    """Only employees get through; everyone else signed in goes to the dashboard."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            return current_app.login_manager.unauthorized()      # redirects to the login page
        if not is_allowed(current_user, MANAGE_USERS):
            return redirect(url_for("dashboard"))
        return view(*args, **kwargs)
    return wrapped
