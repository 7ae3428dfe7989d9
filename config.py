import os
from dotenv import load_dotenv          # loads environment variables from the .env file

load_dotenv()  # This loads the .env file


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")     # signs the flask session cookie
    SESSION_COOKIE_SAMESITE = "Lax"          # the session cookie is not sent on cross-site posts
    WTF_CSRF_ENABLED = True                  # every POST form carries a csrf_token (Flask-WTF)

    # how long a sign-in lasts; the provider's access token is short lived and never refreshed here
    SESSION_LIFETIME_HOURS = float(os.getenv("SESSION_LIFETIME_HOURS", "12"))

    # all supabase content retrieved from - https://supabase.com/docs/reference/python/introduction
    SUPABASE_URL = os.getenv("SUPABASE_URL")                   # supabase project URL
    SUPABASE_KEY = os.getenv("SUPABASE_KEY")                   # public anon key, only used for sign-in / sign-up
    SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")   # service-role key, server side only

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
