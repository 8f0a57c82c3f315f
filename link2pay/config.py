import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./link2pay.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Frontend base URL for redirects, API base URL for gateway notify callbacks
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")

# Supabase Auth (HS256 access tokens)
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
SUPABASE_JWT_AUDIENCE = os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")

# Comma separated list of admin emails allowed to run jobs and read analytics
ADMIN_EMAILS = [e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()]

# PayFast platform account (Link2Pay's own subscription billing)
PAYFAST_MERCHANT_ID = os.getenv("PAYFAST_MERCHANT_ID")
PAYFAST_MERCHANT_KEY = os.getenv("PAYFAST_MERCHANT_KEY")
PAYFAST_PASSPHRASE = os.getenv("PAYFAST_PASSPHRASE")
# "sandbox" or "live"
PAYFAST_MODE = os.getenv("PAYFAST_MODE", "live")
# Reject booking ITNs that do not originate from PayFast's notification servers
PAYFAST_VERIFY_SOURCE_IP = os.getenv("PAYFAST_VERIFY_SOURCE_IP", "false").lower() == "true"
# Reverse proxies in front of the API; their X-Forwarded-For hops are trusted
TRUSTED_PROXY_COUNT = int(os.getenv("TRUSTED_PROXY_COUNT", "0"))

# Paystack
PAYSTACK_SECRET_KEY = os.getenv("PAYSTACK_SECRET_KEY")
PAYSTACK_BASE_URL = os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Link2Pay <noreply@link2pay.co.za>")
SUPPORT_EMAIL_FROM_ADDRESS = os.getenv(
    "SUPPORT_EMAIL_FROM_ADDRESS", "Link2Pay Support <support@link2pay.co.za>"
)
GROWTH_EMAIL_FROM_ADDRESS = os.getenv(
    "GROWTH_EMAIL_FROM_ADDRESS", "Link2Pay Growth <onboarding@resend.dev>"
)
GROWTH_APPLICATION_RECIPIENT = os.getenv("GROWTH_APPLICATION_RECIPIENT", "growth@link2pay.co.za")

# WhatsApp provider: "zoko", "gupshup" or "twilio". Credentials live in platform_settings.
WHATSAPP_PROVIDER = os.getenv("WHATSAPP_PROVIDER", "zoko").lower()
# Pause between campaign sends to stay under provider throughput limits
WHATSAPP_CAMPAIGN_SEND_DELAY = float(os.getenv("WHATSAPP_CAMPAIGN_SEND_DELAY", "1.0"))
WHATSAPP_CAMPAIGN_BATCH_SIZE = int(os.getenv("WHATSAPP_CAMPAIGN_BATCH_SIZE", "50"))

# Retention emails link back into the dashboard
APP_URL = os.getenv("APP_URL", "https://app.link2pay.co.za")
