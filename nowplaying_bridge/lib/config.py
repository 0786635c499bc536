# Now-Playing Bridge
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Shared configuration loader for the now-playing bridge.

Loads a single JSON config file.  Search order:
  0. $NOWPLAYING_BRIDGE_CONFIG           (explicit path, if set)
  1. /etc/nowplaying-bridge/config.json  (system install)
  2. config.json                          (CWD — handy for local dev)
  3. ../../config/default.json            (repo fallback)

Usage:
    from nowplaying_bridge.lib.config import cfg

    port      = cfg("bridge", "port", default=19532)
    backoff   = cfg("bridge", "backoff_ms", default=1000)
    player_ip = cfg("player", "ip", default="")
    bridge    = cfg("bridge")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None

ENV_CONFIG_PATH = "NOWPLAYING_BRIDGE_CONFIG"

_SEARCH_PATHS = [
    "/etc/nowplaying-bridge/config.json",
    "config.json",
    os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json"),
]

KNOWN_PLAYER_TYPES = ("bluesound", "push")


def _search_paths() -> list[str]:
    explicit = os.getenv(ENV_CONFIG_PATH)
    return ([explicit] if explicit else []) + _SEARCH_PATHS


def _section(config: dict, name: str, path: str) -> dict:
    section = config.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        logger.warning("Config %s: %s should be an object, got %r", path, name, section)
        return {}
    return section


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    bridge = _section(config, "bridge", path)
    port = bridge.get("port", 19532)
    if not isinstance(port, int) or not 0 <= port <= 65535:
        logger.warning("Config %s: bridge.port %r is not a valid TCP port", path, port)
    for key in ("backoff_ms", "progress_interval_ms"):
        value = bridge.get(key)
        if value is not None and (not isinstance(value, (int, float)) or value <= 0):
            logger.warning("Config %s: bridge.%s must be a positive number, got %r", path, key, value)
    host = bridge.get("host", "127.0.0.1")
    if host not in ("127.0.0.1", "localhost", "::1"):
        logger.warning("Config %s: bridge.host %s is not a loopback address", path, host)

    player = _section(config, "player", path)
    player_type = player.get("type", "bluesound")
    if player_type not in KNOWN_PLAYER_TYPES:
        logger.warning("Config %s: unknown player.type '%s'", path, player_type)
    if player_type == "bluesound" and not player.get("ip"):
        logger.warning("Config %s: missing player.ip — BluOS monitoring disabled", path)

    background = _section(config, "background", path)
    url = background.get("url")
    if isinstance(url, str) and url and "{artist_id}" not in url:
        logger.warning("Config %s: background.url has no {artist_id} placeholder", path)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _search_paths():
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                if not isinstance(_config, dict):
                    logger.warning("Config %s: top level should be an object, ignoring it", path)
                    _config = {}
                    return _config
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.warning("No config.json found — using empty config")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("bridge")                        → config["bridge"]
    cfg("bridge", "port")                → config["bridge"]["port"]
    cfg("bridge", "port", default=19532) → config["bridge"]["port"] or 19532
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
