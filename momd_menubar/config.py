"""Agent configuration and logging setup."""

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


# ── Config ───────────────────────────────────────────────────────

CONFIG_DIR  = Path.home() / ".config" / "momd-menubar"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULT_PORT     = 9876
SERVER_BINARY    = "momd"
SETTLE_DELAY     = 1.5    # seconds between launching the backend and the first fetch
FETCH_ATTEMPTS   = 5
FETCH_BACKOFF    = 0.5    # doubles after each unreachable attempt
REQUEST_TIMEOUT  = 10
STOP_GRACE       = 3.0
ENV_LOG_LEVEL    = "LOG_LEVEL"


def default_server_path():
    """
    The backend ships next to the agent: inside a py2app bundle that is
    Contents/Resources/momd, otherwise ./momd.
    """
    resources = os.environ.get("RESOURCEPATH")
    if resources:
        return os.path.join(resources, SERVER_BINARY)
    return os.path.join(".", SERVER_BINARY)


def default_config():
    return {
        "port": DEFAULT_PORT,
        "server_path": default_server_path(),
        "settle_delay": SETTLE_DELAY,
        "fetch_attempts": FETCH_ATTEMPTS,
        "fetch_backoff": FETCH_BACKOFF,
        "request_timeout": REQUEST_TIMEOUT,
        "stop_grace": STOP_GRACE,
        "refresh_seconds": 0,
        "log_level": "info",
        "log_file": None,
    }


def load_config(path=None):
    cfg = default_config()
    path = Path(path) if path else CONFIG_FILE
    if not path.exists():
        return cfg
    try:
        with open(path) as f:
            overrides = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return cfg
    if not isinstance(overrides, dict):
        logger.warning("Ignoring config %s: expected a JSON object", path)
        return cfg
    cfg.update({k: v for k, v in overrides.items() if k in cfg})
    return cfg


def save_config(cfg, path=None):
    path = Path(path) if path else CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(cfg, f, indent=2)
    os.chmod(path, 0o600)
    return path


def base_url(cfg):
    return f"http://localhost:{cfg['port']}"


# ── Logging ──────────────────────────────────────────────────────

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def parse_log_level(level):
    """Map debug/info/warn/warning/error to a logging level; anything else is INFO."""
    name = (level or "").strip().lower()
    if name == "debug":
        return logging.DEBUG
    if name in ("warn", "warning"):
        return logging.WARNING
    if name == "error":
        return logging.ERROR
    return logging.INFO


def setup_logging(level=None, log_file=None):
    level = parse_log_level(os.environ.get(ENV_LOG_LEVEL) or level)
    handlers = [logging.StreamHandler()]
    if log_file:
        Path(log_file).expanduser().parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(Path(log_file).expanduser()))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    return level
