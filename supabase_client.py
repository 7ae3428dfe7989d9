import logging

from flask import current_app
from supabase import create_client      # imports the Supabase client constructor
from supabase.client import ClientOptions

logger = logging.getLogger(__name__)


def init_app(app, service_client=None, auth_client_factory=None):
    url = app.config.get("SUPABASE_URL")

    if service_client is None:
        service_key = app.config.get("SUPABASE_SERVICE_KEY")
        if not url or not service_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
        # the service client holds the privileged key; it is used for table access and admin user creation
        service_client = create_client(url, service_key)

    if auth_client_factory is None:
        anon_key = app.config.get("SUPABASE_KEY")
        if not url or not anon_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be set")

        # a fresh client per sign-in keeps one user's session off every other request
        def auth_client_factory():
            return create_client(
                url, anon_key,
                options=ClientOptions(persist_session=False, auto_refresh_token=False),
            )

    app.extensions["supabase"] = service_client
    app.extensions["supabase_auth_factory"] = auth_client_factory
    logger.debug("Supabase clients registered for %s", url)


def get_client():
    return current_app.extensions["supabase"]


def new_auth_client():
    return current_app.extensions["supabase_auth_factory"]()
