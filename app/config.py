import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./kleanr.db")

# Session tokens - CRITICAL: No default secret in production
SESSION_SECRET = os.getenv("SESSION_SECRET")
if not SESSION_SECRET:
    import warnings

    warnings.warn(
        "SESSION_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    SESSION_SECRET = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

JWT_ALGORITHM = "HS256"
JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "168"))  # one week

# Frontend base URL for links in emails
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:8081")

# Stripe Configuration (platform balance and payouts)
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_API_BASE = os.getenv("STRIPE_API_BASE", "https://api.stripe.com/v1")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Kleanr <noreply@kleanr.com>")

# Terms & conditions PDF storage
TERMS_UPLOAD_DIR = os.getenv(
    "TERMS_UPLOAD_DIR", str(Path(__file__).resolve().parent.parent / "uploads" / "terms")
)
MAX_TERMS_PDF_SIZE = int(os.getenv("MAX_TERMS_PDF_SIZE", str(10 * 1024 * 1024)))  # 10MB

# Rate limiting - Redis is optional, memory-only when REDIS_URL is unset
REDIS_URL = os.getenv("REDIS_URL")
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# CORS - comma separated list of allowed origins
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:8081,http://localhost:19006").split(",")
    if origin.strip()
]

# Security headers (HSTS only in production)
IS_PRODUCTION = os.getenv("ENVIRONMENT", "development").lower() == "production"
SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"
