"""
Application configuration using python-dotenv.

This module loads environment variables from .env file into os.environ
for use throughout the application.
"""

import os
import pathlib
from dotenv import load_dotenv


# Determine if we're running in a test environment
# Don't load .env file during testing to ensure predictable test behavior
is_testing = os.getenv("PYTEST_VERSION") is not None or "pytest" in os.getenv("_", "")

# Load .env file into os.environ (only outside of testing)
if not is_testing:
    # Try multiple possible locations for .env file
    possible_paths = [
        pathlib.Path(__file__).parent.parent.parent / ".env",  # backend/.env (when run from backend/src)
        pathlib.Path(__file__).parent.parent.parent.parent / ".env",  # .env at repository root
        pathlib.Path.cwd() / ".env",  # .env in current directory
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(env_path)
            break


def get_database_url():
    """Get the database URL from environment."""
    return os.getenv(
        "DATABASE_URL",
        "postgresql://localhost/practice_portal_dev"
    )

DATABASE_URL = get_database_url()
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Identity provider tokens (issued externally, verified here)
IDENTITY_JWT_SECRET = os.getenv("IDENTITY_JWT_SECRET", "dev-secret-key-change-in-production")
IDENTITY_JWT_ALGORITHM = os.getenv("IDENTITY_JWT_ALGORITHM", "HS256")
IDENTITY_JWT_AUDIENCE = os.getenv("IDENTITY_JWT_AUDIENCE", "") or None
IDENTITY_JWT_EXPIRE_MINUTES = int(os.getenv("IDENTITY_JWT_EXPIRE_MINUTES", "60"))  # Locally issued dev/test tokens

# Directory store behaviour
DB_STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "5000"))
STORE_RETRY_BASE_DELAY_SECONDS = float(os.getenv("STORE_RETRY_BASE_DELAY_SECONDS", "0.2"))

# Staff and patient invitations
STAFF_INVITATION_EXPIRE_DAYS = int(os.getenv("STAFF_INVITATION_EXPIRE_DAYS", "7"))
PATIENT_INVITATION_EXPIRE_DAYS = int(os.getenv("PATIENT_INVITATION_EXPIRE_DAYS", "7"))

# Availability propagation
AVAILABILITY_QUEUE_MAX_SIZE = int(os.getenv("AVAILABILITY_QUEUE_MAX_SIZE", "100"))
