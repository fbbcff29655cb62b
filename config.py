import os
from dotenv import load_dotenv

# config.py

load_dotenv()

# IMPORTANT: This is a default secret key for development purposes ONLY.
# For production, load a strong, randomly generated key from the environment.
SECRET_KEY: str = os.getenv("SECRET_KEY", "your-super-secret-key-please-change-in-production")

ALGORITHM: str = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))  # 7 days

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

# Database
DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./media_gallery.db")

# Frontend URL (for email links and the default CORS origin)
FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
CORS_ORIGINS: list = [o.strip() for o in os.getenv("CORS_ORIGINS", FRONTEND_URL).split(",") if o.strip()]

# Storage: 'local' keeps uploads on disk, 's3' pushes them to a bucket
STORAGE_TYPE: str = os.getenv("STORAGE_TYPE", "local")
UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
MAX_UPLOAD_SIZE_MB: int = int(os.getenv("MAX_UPLOAD_SIZE_MB", "5"))

# AWS S3 Configuration
AWS_S3_BUCKET_NAME: str = os.getenv("AWS_S3_BUCKET_NAME", "your-s3-bucket-name")
AWS_S3_REGION: str = os.getenv("AWS_S3_REGION", "us-east-1")
AWS_ACCESS_KEY_ID: str = os.getenv("AWS_ACCESS_KEY_ID", "your-access-key-id")
AWS_SECRET_ACCESS_KEY: str = os.getenv("AWS_SECRET_ACCESS_KEY", "your-secret-access-key")

# Email: 'console' prints messages, 'ses' sends them through AWS SES
EMAIL_SERVICE_TYPE: str = os.getenv("EMAIL_SERVICE_TYPE", "console")
AWS_SES_REGION: str = os.getenv("AWS_SES_REGION", AWS_S3_REGION)  # Default to S3 region
SENDER_EMAIL_ADDRESS: str = os.getenv("SENDER_EMAIL_ADDRESS", "sender@example.com")  # Must be verified in SES

# Google sign-in
GOOGLE_CLIENT_ID: str = os.getenv("GOOGLE_CLIENT_ID", "")

# Sentry Configuration
SENTRY_DSN: str = os.getenv("SENTRY_DSN", "your-sentry-dsn-goes-here")  # Placeholder DSN

# Token lifetimes
OTP_EXPIRE_MINUTES: int = int(os.getenv("OTP_EXPIRE_MINUTES", "10"))
RESET_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("RESET_TOKEN_EXPIRE_MINUTES", "60"))

# Rate limiting
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() in ("1", "true", "yes")
AUTH_USER_RATE_LIMIT: str = os.getenv("AUTH_USER_RATE_LIMIT", "100/minute")
ANON_USER_RATE_LIMIT: str = os.getenv("ANON_USER_RATE_LIMIT", "20/minute")

# Admin bootstrap (scripts/create_admin.py)
ADMIN_NAME: str = os.getenv("ADMIN_NAME", "Admin User")
ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "change-me-admin1")


def validate_configuration():
    """
    Validates that critical configuration variables are not set to their
    default placeholder values.
    Raises ValueError if any critical variable is a placeholder.
    """
    critical_vars_and_placeholders = {
        "SECRET_KEY": "your-super-secret-key-please-change-in-production",
        "ADMIN_PASSWORD": "change-me-admin1",
        # SENTRY_DSN's placeholder means Sentry is intentionally not configured.
        # FRONTEND_URL and DATABASE_URL defaults are acceptable for local dev.
    }
    if STORAGE_TYPE == "s3":
        critical_vars_and_placeholders.update({
            "AWS_S3_BUCKET_NAME": "your-s3-bucket-name",
            "AWS_ACCESS_KEY_ID": "your-access-key-id",
            "AWS_SECRET_ACCESS_KEY": "your-secret-access-key",
        })
    if EMAIL_SERVICE_TYPE == "ses":
        critical_vars_and_placeholders["SENDER_EMAIL_ADDRESS"] = "sender@example.com"

    problematic_vars = []
    for var_name, placeholder in critical_vars_and_placeholders.items():
        current_value = globals().get(var_name)
        if current_value == placeholder:
            problematic_vars.append(
                f"{var_name} (is set to a default placeholder value: '{placeholder}' and must be changed)"
            )
        elif current_value is None:
            problematic_vars.append(f"{var_name} (is missing or not loaded correctly)")

    if problematic_vars:
        raise ValueError(
            "Configuration problems found:\n - " + "\n - ".join(problematic_vars)
        )
