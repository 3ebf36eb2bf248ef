"""
Runtime settings read from environment variables.

Defaults target local development: SQLite database, files stored on local
disk and served by the app itself. Production points DATABASE_URL at
PostgreSQL and the SUPABASE_* variables at the hosted identity provider
and storage service.
"""

import os


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# ── Database ─────────────────────────────────────────────────
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./scholarship_portal.db")

# ── Logging ──────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ── Identity provider / storage service ──────────────────────
SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
# Storage writes need the service role key; falls back to the anon key
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY", SUPABASE_ANON_KEY)
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

# ── Document uploads ─────────────────────────────────────────
BLOB_BACKEND = os.getenv("BLOB_BACKEND", "local").lower()    # "local" | "http"
STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "applications")
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "./uploads")
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
CLEANUP_ORPHANED_UPLOADS = _flag("CLEANUP_ORPHANED_UPLOADS")

# ── Application lifecycle ────────────────────────────────────
STATUS_TRANSITION_POLICY = os.getenv("STATUS_TRANSITION_POLICY", "permissive").lower()

# ── Post-submission handoff ──────────────────────────────────
HANDOFF_PHONE = os.getenv("HANDOFF_PHONE", "250785358347")
HANDOFF_MESSAGE = os.getenv("HANDOFF_MESSAGE", "Twarayakobokeye muyasindamo Mutzing")

# ── HTTP ─────────────────────────────────────────────────────
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
