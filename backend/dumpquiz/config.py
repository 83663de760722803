"""Application configuration.

All settings come from environment variables with local-development
defaults:
    - Database: data/dumpquiz.db
    - Archived source PDFs: data/archive/
"""
import os
import secrets
from pathlib import Path

# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Data directory for database and archive
DATA_DIR = Path(os.environ.get("DATA_DIR", str(BASE_DIR / "data")))

# Blob archive for uploaded source documents
ARCHIVE_DIR = Path(os.environ.get("ARCHIVE_DIR", str(DATA_DIR / "archive")))

# DEFAULT: sqlite:///{project}/data/dumpquiz.db
DATABASE_URL = os.environ.get("DATABASE_URL", f"sqlite:///{DATA_DIR / 'dumpquiz.db'}")

# Document store settings
QUIZZES_TABLE = os.environ.get("QUIZZES_TABLE", "quizzes")
PROGRESS_TABLE = os.environ.get("PROGRESS_TABLE", "progress")

# Per-item ceiling of the document store (bytes of serialized JSON)
ITEM_SIZE_LIMIT_BYTES = int(os.environ.get("ITEM_SIZE_LIMIT_BYTES", str(400 * 1024)))

# Questions per chunk record; ~50 typical questions stay well under the ceiling
QUIZ_CHUNK_SIZE = int(os.environ.get("QUIZ_CHUNK_SIZE", "50"))

# Repeating page header printed by the dump vendor on every page
PAGE_BOILERPLATE_PATTERN = os.environ.get(
    "PAGE_BOILERPLATE_PATTERN",
    r"IT\s+Certification\s+Guaranteed,?\s*The\s+Easy\s+Way!?",
)

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)
ARCHIVE_DIR.mkdir(parents=True, exist_ok=True)

# Server port
PORT = int(os.environ.get("PORT", "8000"))

# JWT Authentication
JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", secrets.token_urlsafe(32))
JWT_ALGORITHM = "HS256"
JWT_EXPIRY_HOURS = int(os.environ.get("JWT_EXPIRY_HOURS", "24"))

# Users registering with one of these emails get the admin flag
ADMIN_EMAILS = {
    email.strip().lower()
    for email in os.environ.get("ADMIN_EMAILS", "").split(",")
    if email.strip()
}
