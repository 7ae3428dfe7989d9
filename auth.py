import logging
import time

from models import FARMER, ROLES
from supabase_client import get_client, new_auth_client

logger = logging.getLogger(__name__)


def normalize_email(email):
    return (email or "").strip().lower()


def sign_in(email, password):
    # signs in on a throwaway anon client; AuthError propagates to the caller with the provider's message
    client = new_auth_client()
    response = client.auth.sign_in_with_password({
        "email": normalize_email(email),
        "password": password,
    })
    logger.info("Signed in %s", response.user.email)
    return response


def sign_up(email, password, full_name=""):
    # self registration is always a farmer; employees are created from the users page
    client = new_auth_client()
    response = client.auth.sign_up({
        "email": normalize_email(email),
        "password": password,
        "options": {"data": {"full_name": full_name.strip(), "role": FARMER}},
    })
    logger.info("Registered %s", normalize_email(email))
    return response


def create_user(email, password, role, full_name=""):
    """Create a pre-confirmed account through the service-role client.

    The profile row is created by the database trigger from ``user_metadata``.
    """
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    response = get_client().auth.admin.create_user({
        "email": normalize_email(email),
        "password": password,
        "email_confirm": True,     # skips the confirmation email
        "user_metadata": {"role": role, "full_name": full_name.strip()},
    })
    logger.info("Created %s account for %s", role, normalize_email(email))
    return response.user


def session_expired(expires_at, now=None):
    if not expires_at:
        return False
    return (now if now is not None else time.time()) >= expires_at


def session_deadline(hours, now=None):
    return (now if now is not None else time.time()) + hours * 3600
