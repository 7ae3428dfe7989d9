import logging

from models import FARMER, Profile
from supabase_client import get_client

logger = logging.getLogger(__name__)


def get_profile(user_id):
    response = get_client().table("profiles").select("*").eq("id", user_id).limit(1).execute()
    return Profile.from_supabase(response.data[0]) if response.data else None


def resolve_profile(user_id):
    # any failure here is logged and the role is treated as absent
    try:
        profile = get_profile(user_id)
    except Exception:
        logger.exception("Error fetching profile for %s", user_id)
        return None

    if profile is None:
        logger.warning("No profile found for %s", user_id)
    return profile


def resolve_role(user_id):
    profile = resolve_profile(user_id)
    return profile.role if profile else None


def list_profiles():
    response = get_client().table("profiles").select("*").order("created_at", desc=True).execute()
    return [Profile.from_supabase(p) for p in response.data or []]


def list_farmers():
    response = (
        get_client().table("profiles")
        .select("*")
        .eq("role", FARMER)
        .order("full_name")
        .execute()
    )
    return [Profile.from_supabase(p) for p in response.data or []]
