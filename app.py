# https://flask.palletsprojects.com

import logging

import httpx                      # network failures surface as httpx errors from the supabase client
# Core Flask tools for app setup, templates, forms, redirects, and messages
from flask import Flask, render_template, request, redirect, url_for, flash, session

# Flask-Login tools for user sessions and route protection
from flask_login import (
    LoginManager, login_user, logout_user,
    current_user, login_required
)
from flask_wtf.csrf import CSRFProtect      # csrf tokens on every POST form
from supabase import AuthError, PostgrestAPIError

import auth
import permissions
import products
import profiles
import supabase_client
from config import Config
from models import User, ROLES, FARMER
from permissions import is_allowed, employee_required

logger = logging.getLogger(__name__)

# failures talking to the Data Store; shown to the user verbatim, never retried
DATA_ERRORS = (PostgrestAPIError, httpx.HTTPError)


def error_message(exc):
    return getattr(exc, "message", None) or str(exc)


def create_app(config=None, service_client=None, auth_client_factory=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)      # overrides, mostly from tests

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    supabase_client.init_app(app, service_client, auth_client_factory)
    CSRFProtect(app)

# https://flask-login.readthedocs.io/en/latest/
    login_manager = LoginManager()           # manages user login sessions
    login_manager.init_app(app)              # links login manager to the Flask app
    login_manager.login_view = "login"       # redirects unauthenticated users to the login page

    @login_manager.user_loader
    def load_user(user_id):
        # sign-ins end after SESSION_LIFETIME_HOURS
        if auth.session_expired(session.get("expires_at")):
            logger.info("Session for %s expired", user_id)
            session.clear()
            return None

        # role comes from the profiles table; a failed lookup leaves it empty (no access)
        profile = profiles.resolve_profile(user_id)
        return User(
            id=user_id,
            email=session.get("email", ""),
            role=profile.role if profile else None,
            full_name=profile.full_name if profile else "",
        )

    @app.context_processor
    def inject_permissions():
        # templates decide which buttons to show with the same check the views use
        def can(action, product=None):
            return is_allowed(current_user, action, product)
        return {"can": can, "perm": permissions}

    @app.route("/")
    def index():
        if current_user.is_authenticated:
            return redirect(url_for("dashboard"))
        # redirects unauthenticated users to login page
        return redirect(url_for("login"))

    # --- Auth ---   https://dev.to/nagatodev/adding-authentication-to-a-flask-application-53ep
    @app.route("/login", methods=["GET", "POST"])
    def login():
        if current_user.is_authenticated:
            return redirect(url_for("dashboard"))

        if request.method == "POST":
            email = auth.normalize_email(request.form.get("email"))
            password = request.form.get("password", "")

            try:
                response = auth.sign_in(email, password)
            except AuthError as e:
                logger.warning("Sign-in failed for %s: %s", email, error_message(e))
                flash(error_message(e), "danger")           # provider message shown as-is
                return redirect(url_for("login"))
            except httpx.HTTPError as e:
                logger.error("Sign-in request failed for %s: %s", email, e)
                flash(error_message(e), "danger")
                return redirect(url_for("login"))

            # remembers who signed in and until when the sign-in is good
            session["email"] = response.user.email
            session["expires_at"] = auth.session_deadline(app.config["SESSION_LIFETIME_HOURS"])

            login_user(load_user(response.user.id))
            return redirect(url_for("dashboard"))

        return render_template("login.html")

    @app.route("/register", methods=["GET", "POST"])
    def register():
        if current_user.is_authenticated:
            return redirect(url_for("dashboard"))

        if request.method == "POST":
            email = auth.normalize_email(request.form.get("email"))
            password = request.form.get("password", "")
            full_name = request.form.get("full_name", "")

            try:
                response = auth.sign_up(email, password, full_name)
            except (AuthError, httpx.HTTPError) as e:
                logger.warning("Registration failed for %s: %s", email, error_message(e))
                flash(error_message(e), "danger")
                return redirect(url_for("register"))

            if response.session is None:
                # the project asks new users to confirm their email first
                flash("Account created. Confirm your email, then log in.", "success")
            else:
                flash("Account created. Please log in.", "success")
            return redirect(url_for("login"))

        return render_template("register.html")

    @app.route("/logout")
    @login_required
    def logout():
        logger.info("Signed out %s", current_user.email)
        logout_user()
        session.clear()          # drops the remembered email and expiry too
        flash("Logged out.", "info")
        return redirect(url_for("login"))

    # --- Pages ---
    @app.route("/dashboard")
    @login_required
    def dashboard():
        # farmers get a summary of their own products; everyone else gets the welcome screen
        if not is_allowed(current_user, permissions.CREATE_PRODUCT):
            return render_template("welcome.html")

        try:
            own_products = products.list_products(current_user)
        except DATA_ERRORS as e:
            logger.error("Dashboard fetch failed for %s: %s", current_user.id, error_message(e))
            flash(error_message(e), "danger")
            own_products = []

        return render_template("dashboard.html", summary=products.summarize(own_products))

    @app.route("/products")
    @login_required
    def view_products():
        if not is_allowed(current_user, permissions.VIEW_PRODUCTS):
            flash("Your account has no role yet. Contact an employee.", "warning")
            return redirect(url_for("dashboard"))

        search = request.args.get("search", "")
        category = request.args.get("category", "")
        sees_all = is_allowed(current_user, permissions.VIEW_ALL_PRODUCTS)
        farmer_id = request.args.get("farmer", "") if sees_all else ""

        try:
            fetched = products.list_products(current_user, farmer_id or None)
        except DATA_ERRORS as e:
            logger.error("Product fetch failed for %s: %s", current_user.id, error_message(e))
            flash("Error fetching products: " + error_message(e), "danger")
            fetched = []

        farmers = []
        if sees_all:
            try:
                farmers = profiles.list_farmers()      # options for the farmer selector
            except DATA_ERRORS as e:
                logger.error("Farmer list fetch failed: %s", error_message(e))

        return render_template(
            "products.html",
            products=products.filter_products(fetched, search, category),
            categories=products.categories(fetched),
            farmers=farmers,
            search=search,
            category=category,
            farmer_id=farmer_id,
        )

    @app.route("/products/new", methods=["GET", "POST"])
    @login_required
    def new_product():
        if not is_allowed(current_user, permissions.CREATE_PRODUCT):
            flash("Only farmers can add products.", "warning")
            return redirect(url_for("view_products"))

        if request.method == "POST":
            try:
                products.create_product(current_user, request.form)
            except ValueError as e:
                flash(str(e), "danger")
                return render_template("product_form.html", product=None, form=request.form)
            except DATA_ERRORS as e:
                logger.error("Product create failed for %s: %s", current_user.id, error_message(e))
                flash(error_message(e), "danger")
                return render_template("product_form.html", product=None, form=request.form)

            flash("Product created successfully", "success")
            return redirect(url_for("view_products"))

        return render_template("product_form.html", product=None, form={})

    def owned_product_or_redirect(product_id, action):
        # returns (product, None) when the user may act on it, else (None, redirect response)
        try:
            product = products.get_product(product_id)
        except DATA_ERRORS as e:
            flash(error_message(e), "danger")
            return None, redirect(url_for("view_products"))

        if product is None:
            flash("Product not found.", "warning")
            return None, redirect(url_for("view_products"))

        if not is_allowed(current_user, action, product):
            logger.warning("%s refused %s on product %s", current_user.id, action, product_id)
            verb = "edit" if action == permissions.EDIT_PRODUCT else "delete"
            flash(f"You can only {verb} your own products", "danger")
            return None, redirect(url_for("view_products"))

        return product, None

    @app.route("/products/<product_id>/edit", methods=["GET", "POST"])
    @login_required
    def edit_product(product_id):
        product, refused = owned_product_or_redirect(product_id, permissions.EDIT_PRODUCT)
        if refused:
            return refused

        if request.method == "POST":
            try:
                affected = products.update_product(current_user, product_id, request.form)
            except ValueError as e:
                flash(str(e), "danger")
                return render_template("product_form.html", product=product, form=request.form)
            except DATA_ERRORS as e:
                logger.error("Product update failed for %s: %s", product_id, error_message(e))
                flash(error_message(e), "danger")
                return render_template("product_form.html", product=product, form=request.form)

            if not affected:
                flash("You can only edit your own products", "danger")
            else:
                flash("Product updated successfully", "success")
            return redirect(url_for("view_products"))

        form = {
            "name": product.name,
            "category": product.category,
            "production_date": product.production_date.isoformat() if product.production_date else "",
        }
        return render_template("product_form.html", product=product, form=form)

    @app.route("/products/<product_id>/delete", methods=["GET", "POST"])
    @login_required
    def delete_product(product_id):
        product, refused = owned_product_or_redirect(product_id, permissions.DELETE_PRODUCT)
        if refused:
            return refused

        if request.method == "POST":
            try:
                affected = products.delete_product(current_user, product_id)
            except DATA_ERRORS as e:
                logger.error("Product delete failed for %s: %s", product_id, error_message(e))
                flash(error_message(e), "danger")
                return redirect(url_for("view_products"))

            if affected:
                flash("Product deleted successfully", "success")
            else:
                flash("You can only delete your own products", "danger")
            return redirect(url_for("view_products"))

        # asks for confirmation before deleting
        return render_template("product_confirm_delete.html", product=product)

    # --- employee-only user management ---
    @app.route("/users", methods=["GET", "POST"])
    @employee_required
    def manage_users():
        if request.method == "POST":
            email = auth.normalize_email(request.form.get("email"))
            password = request.form.get("password", "")
            role = request.form.get("role", FARMER)
            full_name = request.form.get("full_name", "")

            if not email or not password:
                flash("Email and password are required.", "danger")
                return redirect(url_for("manage_users"))

            try:
                auth.create_user(email, password, role, full_name)
            except ValueError as e:
                flash(str(e), "danger")
            except (AuthError, *DATA_ERRORS) as e:
                logger.error("Creating user %s failed: %s", email, error_message(e))
                flash(error_message(e), "danger")
            else:
                flash(f"User {email} created successfully. They can now log in with their credentials.", "success")
            return redirect(url_for("manage_users"))

        try:
            users = profiles.list_profiles()
        except DATA_ERRORS as e:
            logger.error("Profile list fetch failed: %s", error_message(e))
            flash("Error fetching users: " + error_message(e), "danger")
            users = []

        return render_template("users.html", users=users, roles=ROLES)

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
