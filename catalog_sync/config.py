# ----------------------------------------------------------------
# Import configuration variables to be used throughout the project
# ----------------------------------------------------------------
import os
from dotenv import load_dotenv

# Load .env (allow container env to override file values)
load_dotenv(override=True)


def _rstrip_slash(s: str) -> str:
    return (s or "").rstrip("/")


def _get_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return str(v).strip().lower() in {"1", "true", "yes", "on", "y"}


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if not raw.strip():
        return default
    try:
        return float(raw.replace(",", "."))
    except ValueError:
        return default


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    if not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Settings:
    # ── Britpart (source catalog) ────────────────────────────────────────────
    BRITPART_BASE: str = _rstrip_slash(os.getenv("BRITPART_BASE", ""))
    BRITPART_TOKEN: str = os.getenv("BRITPART_TOKEN", "")
    # Refuse to plan on a tree larger than this (runaway / malformed source)
    BRITPART_MAX_NODES: int = _get_int("BRITPART_MAX_NODES", 5000)

    # ── WooCommerce (target store) ───────────────────────────────────────────
    WC_BASE_URL: str = _rstrip_slash(os.getenv("WC_BASE_URL", ""))
    WC_API_KEY: str = os.getenv("WC_API_KEY", "")
    WC_API_SECRET: str = os.getenv("WC_API_SECRET", "")

    # ── HTTP ─────────────────────────────────────────────────────────────────
    HTTP_TIMEOUT: float = _get_float("HTTP_TIMEOUT", 20.0)
    HTTP_VERIFY_SSL: bool = _get_bool("HTTP_VERIFY_SSL", True)

    # ── Category sync ────────────────────────────────────────────────────────
    # Slug of a synced category = prefix + Britpart id (the idempotency key)
    CATEGORY_SLUG_PREFIX: str = os.getenv("CATEGORY_SLUG_PREFIX", "bp-")

    # ── Price import defaults (overridable per request) ──────────────────────
    PRICE_FX: float = _get_float("PRICE_FX", 13.0)
    PRICE_MARKUP_PCT: float = _get_float("PRICE_MARKUP_PCT", 0.0)
    PRICE_ROUND_STEP: float = _get_float("PRICE_ROUND_STEP", 1.0)
    PRICE_ROUND_MODE: str = os.getenv("PRICE_ROUND_MODE", "nearest")
    PRICE_CONCURRENCY: int = _get_int("PRICE_CONCURRENCY", 4)
    PRICE_CHUNK_SIZE: int = _get_int("PRICE_CHUNK_SIZE", 500)

    # ── Admin Panel ──────────────────────────────────────────────────────────
    ADMIN_USER: str = os.getenv("ADMIN_USER", "admin")
    ADMIN_PASS: str = os.getenv("ADMIN_PASS", "changeme")

    # ── CORS ─────────────────────────────────────────────────────────────────
    # Comma-separated list in .env, e.g. "https://example.com, https://foo.bar"
    CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


settings = Settings()
