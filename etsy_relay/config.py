"""
Etsy relay configuration. Values come from the environment (or a local .env).
Missing credentials are not fatal here; they surface as upstream auth failures at first use.
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Etsy app keystring; doubles as OAuth client_id and x-api-key header
ETSY_API_KEY = os.environ.get("ETSY_API_KEY", "")

# Collected but not sent: the token exchange is PKCE-only (public client)
ETSY_SHARED_SECRET = os.environ.get("ETSY_SHARED_SECRET", "")

PORT = int(os.environ.get("PORT", "3000"))

# HS256 key for the signed session cookie
SESSION_SECRET = os.environ.get("SESSION_SECRET", "your-secret-key")

# Single browser origin allowed by CORS (credentials enabled)
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:8080").rstrip("/")

# Must match the redirect URI registered with the Etsy app
REDIRECT_URI = os.environ.get("REDIRECT_URI", "http://localhost:3000/api/auth/etsy/callback")

# Where the browser lands after a successful callback
LANDING_PATH = os.environ.get("LANDING_PATH", "/app.html")

# Session cookie; 24h lifetime for both cookie and server-side record
SESSION_COOKIE_NAME = os.environ.get("SESSION_COOKIE_NAME", "etsy_relay_sid")
SESSION_MAX_AGE = 24 * 60 * 60
SESSION_COOKIE_SECURE = os.environ.get("SESSION_COOKIE_SECURE", "false").lower() in ("1", "true", "yes")

# Optional directory with the frontend build, mounted at /
STATIC_DIR = os.environ.get("STATIC_DIR", "").strip() or None

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# Seconds; applies to every upstream call
HTTP_TIMEOUT = float(os.environ.get("HTTP_TIMEOUT", "10.0"))

# Upstream endpoints (public identifiers)
ETSY_AUTHORIZE_URL = "https://www.etsy.com/oauth/connect"
ETSY_TOKEN_URL = "https://api.etsy.com/v3/public/oauth/token"
ETSY_BASE_URL = "https://openapi.etsy.com/v3"

ETSY_SCOPES = (
    "listings_r listings_w shops_r shops_w transactions_r transactions_w "
    "address_r address_w email_r profile_r profile_w"
)

REQUIRED_SETTINGS = {
    "ETSY_API_KEY": ETSY_API_KEY,
    "ETSY_SHARED_SECRET": ETSY_SHARED_SECRET,
    "SESSION_SECRET": os.environ.get("SESSION_SECRET", ""),
    "FRONTEND_URL": os.environ.get("FRONTEND_URL", ""),
    "REDIRECT_URI": os.environ.get("REDIRECT_URI", ""),
}
