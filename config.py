import logging
import os
import sys

_config_log = logging.getLogger("config")


def _as_bool(name: str, default: str = "false") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "y", "on"}


def _as_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


# ---- Discord ----
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN") or os.getenv("TOKEN")

# ---- Environment ----
ENVIRONMENT = os.getenv("ENVIRONMENT", "prod").strip().lower()
BOT_NAME = os.getenv("BOT_NAME", "Sticky Surgery")


# ---- Guild sync ----
def _parse_id_list(raw: str | None) -> list[int]:
    if not raw:
        return []
    out: list[int] = []
    for part in str(raw).split(","):
        p = part.strip()
        if not p:
            continue
        if p.isdigit():
            out.append(int(p))
    # stable de-dupe
    seen: set[int] = set()
    uniq: list[int] = []
    for x in out:
        if x in seen:
            continue
        seen.add(x)
        uniq.append(x)
    return uniq


DEV_GUILD_IDS = _parse_id_list(os.getenv("DEV_GUILD_ID"))
SYNC_GUILD_IDS = _parse_id_list(os.getenv("SYNC_GUILD_ID"))

# ---- Owners ----
# Bot owners are the only ones allowed to create/delete sticker packs.
BOT_OWNER_IDS = {
    int(x.strip())
    for x in (os.getenv("BOT_OWNER_IDS") or "").split(",")
    if x.strip().isdigit()
}


# ---- Sticker images ----
def _sticker_base_url() -> str | None:
    base = (os.getenv("STICKER_BASE_URL") or "").strip().rstrip("/")
    if base:
        return base
    host = (os.getenv("STICKER_HOSTNAME") or "").strip().strip("/")
    if host:
        return f"http://{host}"
    return None


# Public base URL that serves self-hosted sticker images (see core/sticker_server.py).
# Without it, self-hosted stickers resolve but cannot be delivered.
STICKER_BASE_URL = _sticker_base_url()

# Root directory for uploaded sticker images: <STICKER_DIR>/stickers/{guild,user,pack}/...
STICKER_DIR = (os.getenv("STICKER_DIR") or "data").strip()

MAX_STICKER_BYTES = _as_int("MAX_STICKER_BYTES", 4 * 1024 * 1024)
IMAGE_FETCH_TIMEOUT_S = float(os.getenv("IMAGE_FETCH_TIMEOUT_S", "12").strip() or "12")

# ---- Delivery ----
WEBHOOK_NAME_PREFIX = (os.getenv("WEBHOOK_NAME_PREFIX") or "stickysurgery").strip()

# ---- Guild defaults ----
# Applies to guilds created lazily on first reference.
DEFAULT_PERSONAL_ALLOWED = _as_bool("DEFAULT_PERSONAL_ALLOWED", "true")

# ---- Gateway ----
# Privileged members intent keeps the member cache warm for role checks.
MEMBERS_INTENT = _as_bool("MEMBERS_INTENT", "false")

# ---- Side server (health, metrics, self-hosted images) ----
PORT = _as_int("PORT", 8080)


# ---------------------------------------------------------------------------
# Startup validation
# ---------------------------------------------------------------------------

def validate_config() -> None:
    """Check for required and recommended environment variables.

    Called at import time. In production, missing critical vars cause a hard
    exit so the problem is obvious (instead of a cryptic error 5 minutes later).
    """
    is_prod = ENVIRONMENT != "dev"
    errors: list[str] = []
    warnings: list[str] = []

    if not DISCORD_TOKEN:
        errors.append("DISCORD_TOKEN (or TOKEN) is not set. The bot cannot start.")

    if is_prod and not os.getenv("DATABASE_URL"):
        errors.append("DATABASE_URL is not set. Postgres is required in production.")

    if not STICKER_BASE_URL:
        warnings.append(
            "STICKER_BASE_URL (or STICKER_HOSTNAME) is not set. Self-hosted stickers "
            "will resolve but cannot be delivered; only external image URLs will work."
        )
    if not BOT_OWNER_IDS:
        warnings.append(
            "BOT_OWNER_IDS is not set. Nobody will be able to create sticker packs. "
            "Set to a comma-separated list of Discord user IDs."
        )

    for w in warnings:
        _config_log.warning("CONFIG WARNING: %s", w)

    if errors:
        for e in errors:
            _config_log.critical("CONFIG ERROR: %s", e)
        if is_prod:
            sys.exit(1)


validate_config()
