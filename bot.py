# bot.py
import os
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

print("[boot] bot.py loading…", flush=True)

import discord
from discord.ext import commands
from dotenv import load_dotenv
from pythonjsonlogger.json import JsonFormatter
import asyncio

# ---------------------------------------------------------------------------
# Environment (must run before config reads os.environ)
# ---------------------------------------------------------------------------

load_dotenv()

import config

print(f"[boot] config OK  env={getattr(config, 'ENVIRONMENT', '?')}", flush=True)
from core.delivery import StickerDelivery
from core.resolver import StickerResolver
from core.sticker_server import start_sticker_server
from utils.audit import audit_log
from utils.db import dispose_engine, init_db
from utils.prom import active_guilds
from utils.roles import DiscordRoleSource
from utils.sticker_assets import delete_owner_images
from utils.sticker_store import SqlStickerRegistry
from utils.stickers import StickerOwner
from utils.webhooks import WebhookCache

# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------

intents = discord.Intents.default()
# :name: messages are matched against message content.
intents.message_content = True
# Member cache makes role checks cheaper; needs the privileged intent enabled.
intents.members = config.MEMBERS_INTENT

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_DIR = Path(__file__).parent / "logs"
LOG_DIR.mkdir(exist_ok=True)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

root_logger = logging.getLogger()
root_logger.setLevel(logging.INFO)


def _make_json_formatter() -> logging.Formatter:
    """Build a JSON formatter for structured file logs."""
    return JsonFormatter(
        "{asctime}{levelname}{name}{message}",
        style="{",
        rename_fields={"asctime": "timestamp", "levelname": "level"},
    )


def setup_logging() -> None:
    """Configure logging once (safe for reloads)."""
    for handler in root_logger.handlers:
        if getattr(handler, "_stickybot_handler", False):
            return

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    console._stickybot_handler = True  # type: ignore[attr-defined]
    root_logger.addHandler(console)

    json_fmt = _make_json_formatter()

    file = RotatingFileHandler(
        LOG_DIR / "bot.log",
        maxBytes=5_000_000,
        backupCount=5,
        encoding="utf-8",
    )
    file.setFormatter(json_fmt)
    file._stickybot_handler = True  # type: ignore[attr-defined]
    root_logger.addHandler(file)

    errors = RotatingFileHandler(
        LOG_DIR / "errors.log",
        maxBytes=2_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    errors.setLevel(logging.ERROR)
    errors.setFormatter(json_fmt)
    errors._stickybot_handler = True  # type: ignore[attr-defined]
    root_logger.addHandler(errors)


setup_logging()
logger = logging.getLogger("bot")

# ---------------------------------------------------------------------------
# Bot
# ---------------------------------------------------------------------------


# NOTE: For large-scale deployment, sharding is required.
# AutoShardedBot handles shard management automatically.
class StickerBot(commands.AutoShardedBot):
    """Slash commands plus the :name: message trigger (handled by the stickers cog)."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.registry = SqlStickerRegistry(default_personal_allowed=config.DEFAULT_PERSONAL_ALLOWED)
        self.resolver = StickerResolver(
            self.registry,
            DiscordRoleSource(self),
            default_personal_allowed=config.DEFAULT_PERSONAL_ALLOWED,
        )
        self.webhooks = WebhookCache()
        self.delivery = StickerDelivery(self.resolver, self.webhooks, config.STICKER_BASE_URL)
        self.web_runner = None

    async def setup_hook(self) -> None:
        # DB preflight for durable data.
        await init_db()

        # Health-check + metrics + sticker image server (must succeed so Railway sees the container as alive).
        try:
            print("[boot] starting sticker/health server…", flush=True)
            self.web_runner = await start_sticker_server(self)
            print("[boot] sticker/health server UP", flush=True)
        except OSError:
            logger.exception("Failed to start sticker/health server; Railway may stay stuck on 'Creating containers'")

        await load_extensions()

        # Sync slash commands (dev guild or global) after extensions are loaded.
        try:
            await sync_commands()
        except discord.HTTPException:
            logger.exception("sync_commands() failed")

    async def on_message(self, message: discord.Message):
        return  # no prefix commands; :name: is handled by the stickers cog listener

    async def close(self) -> None:
        if self.web_runner is not None:
            await self.web_runner.cleanup()
            self.web_runner = None
        await super().close()


def _get_env_int(name: str) -> int | None:
    try:
        v = int(str(os.getenv(name, "")).strip())
        return v if v > 0 else None
    except ValueError:
        return None


_shard_count = _get_env_int("SHARD_COUNT")

bot = StickerBot(
    command_prefix="__NO_PREFIX__",
    intents=intents,
    shard_count=_shard_count,
)


# ---------------------------------------------------------------------------
# Extensions
# ---------------------------------------------------------------------------

EXTENSIONS = [
    "commands.slash.stickers",
    "commands.slash.packs",
    "commands.slash.settings",
]

logger.info("EXTENSIONS tuple: %r", EXTENSIONS)


async def load_extensions() -> None:
    """Load all extensions.  Log failures but keep going so one broken cog
    doesn't kill the health-check server and block Railway deploys."""
    failed: list[str] = []
    for ext in EXTENSIONS:
        try:
            await bot.load_extension(ext)
            logger.info("Loaded extension: %s", ext)
        except commands.ExtensionError:
            logger.exception("FAILED loading extension: %s", ext)
            failed.append(ext)
    if failed:
        logger.error("Extensions that failed to load: %s", failed)


async def sync_commands() -> None:
    env = str(getattr(config, "ENVIRONMENT", "prod")).lower().strip()

    if env == "dev":
        # Support comma-separated IDs in SYNC_GUILD_ID / DEV_GUILD_ID via config.SYNC_GUILD_IDS / DEV_GUILD_IDS.
        guild_ids = list(config.SYNC_GUILD_IDS or []) or list(config.DEV_GUILD_IDS or [])
        if not guild_ids:
            logger.warning("No SYNC_GUILD_ID/DEV_GUILD_ID set; skipping dev guild slash-command sync")
            return

        logger.info("Tree command names (local/global): %s", [c.name for c in bot.tree.get_commands()])
        logger.info("SYNC TARGET guild_ids=%s", guild_ids)

        for guild_id in guild_ids:
            guild = discord.Object(id=int(guild_id))
            # In dev, always copy globals -> guild so guild sync is instant
            bot.tree.copy_global_to(guild=guild)
            await bot.tree.sync(guild=guild)
            logger.info("✅ Synced slash commands to guild=%s", guild_id)
    else:
        await bot.tree.sync()
        logger.info("✅ Synced slash commands globally (prod)")

# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@bot.event
async def on_ready():
    audit_log(
        "BOT_READY",
        fields={
            "bot_user": str(bot.user),
            "env": getattr(config, "ENVIRONMENT", None),
        },
    )
    logger.info("%s is ready. Logged in as %s", config.BOT_NAME, bot.user)
    active_guilds.set(len(bot.guilds))


@bot.event
async def on_guild_join(guild: discord.Guild):
    active_guilds.set(len(bot.guilds))
    await bot.registry.ensure_guild(guild.id)
    audit_log("GUILD_JOIN", guild_id=guild.id, fields={"guild_name": guild.name})


@bot.event
async def on_guild_remove(guild: discord.Guild):
    active_guilds.set(len(bot.guilds))
    # Guild-owned stickers, role classes and installs go with the guild,
    # and its self-hosted images stop being served.
    await bot.registry.remove_guild(guild.id)
    delete_owner_images(StickerOwner.guild(guild.id))
    audit_log("GUILD_REMOVE", guild_id=guild.id)


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------

async def main():
    try:
        print("[boot] connecting to Discord…", flush=True)
        await bot.start(config.DISCORD_TOKEN)
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Received shutdown signal")
    finally:
        # Graceful cleanup: close the Discord gateway and dispose DB engine.
        if not bot.is_closed():
            logger.info("Closing bot connection...")
            await bot.close()
        await dispose_engine()
        logger.info("Database engine disposed")
        logger.info("Shutdown complete")


if __name__ == "__main__":
    import signal

    def _handle_signal(sig, _frame):
        logger.info("Signal %s received, initiating graceful shutdown...", signal.Signals(sig).name)
        raise KeyboardInterrupt

    # Windows uses SIGINT (Ctrl+C); Unix also supports SIGTERM (Docker/Railway stop)
    signal.signal(signal.SIGINT, _handle_signal)
    try:
        signal.signal(signal.SIGTERM, _handle_signal)
    except (OSError, AttributeError):
        pass  # SIGTERM not available on Windows

    asyncio.run(main())
