"""Prometheus metric definitions.

All metric objects are created at import time so any module can increment them.
The /metrics HTTP endpoint (registered in core/sticker_server.py) calls
``prometheus_client.generate_latest()`` to render current values.
"""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

sticker_resolutions_total = Counter(
    "bot_sticker_resolutions_total",
    "Sticker resolutions by outcome",
    ["outcome", "context"],  # outcome: hit|miss|denied|error, context: guild|personal
)

sticker_resolution_latency = Histogram(
    "bot_sticker_resolution_latency_seconds",
    "Time spent resolving a sticker name",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5],
)

sticker_deliveries_total = Counter(
    "bot_sticker_deliveries_total",
    "Sticker deliveries by status",
    ["status"],  # sent|no_match|unavailable|failed
)

commands_total = Counter(
    "bot_commands_total",
    "Total commands processed",
    ["command", "status"],
)

active_guilds = Gauge(
    "bot_active_guilds",
    "Number of guilds the bot is currently in",
)
