"""Command-line entry point for the menu bar agent."""

import logging
import sys
from pathlib import Path

from . import __version__, client
from .config import (
    CONFIG_FILE, base_url, default_config, load_config, save_config, setup_logging,
)
from .errors import FetchError

logger = logging.getLogger(__name__)


HEADING = f"momd Menu Bar Agent {__version__}"

USAGE_TEXT = f"""
{HEADING}
{'═' * len(HEADING)}

Usage:
  python3 -m momd_menubar                     Launch the backend and the menu bar agent
  python3 -m momd_menubar --port N            Backend port (default 9876)
  python3 -m momd_menubar --server PATH       Backend binary to launch
  python3 -m momd_menubar --no-server         Attach to a backend that is already running
  python3 -m momd_menubar --config PATH       Config file (default {CONFIG_FILE})
  python3 -m momd_menubar --init-config       Write the default config file and exit
  python3 -m momd_menubar --test              Fetch and print the menu from a running backend
  python3 -m momd_menubar --install           Print launchd plist for auto-start

Requires:
  pip3 install rumps requests

Log level: LOG_LEVEL=debug|info|warn|error
"""


def cmd_test(cfg):
    url = base_url(cfg)
    print(f"Fetching menu from {url}/ …\n")
    try:
        doc = client.fetch_menu(url, timeout=cfg["request_timeout"])
    except FetchError as e:
        print(f"❌ {e}")
        return 1

    header = doc.title or "(untitled menu)"
    if doc.version:
        header += f"  [{doc.version}]"
    print(header)
    for depth, item in doc.walk():
        action = ""
        if item.action_target and not item.is_submenu:
            action = f"  →  {item.kind.value} {item.action_target}"
        print(f"{'  ' * (depth + 1)}{item.title}{action}")
    print(f"\n✅ {len(doc.items)} top-level items")
    return 0


def cmd_install():
    python = sys.executable
    plist_path = Path.home() / "Library/LaunchAgents/com.momd.menubar.plist"
    plist = f"""<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN"
  "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
    <key>Label</key>
    <string>com.momd.menubar</string>
    <key>ProgramArguments</key>
    <array>
        <string>{python}</string>
        <string>-m</string>
        <string>momd_menubar</string>
    </array>
    <key>RunAtLoad</key>
    <true/>
    <key>StandardOutPath</key>
    <string>/tmp/momd-menubar.log</string>
    <key>StandardErrorPath</key>
    <string>/tmp/momd-menubar.err</string>
</dict>
</plist>"""
    print(f"\n📄 Save this to:\n   {plist_path}\n")
    print(plist)
    print(f"\nThen run:\n   launchctl load {plist_path}\n")


def _flag_value(args, flag):
    idx = args.index(flag)
    if idx + 1 >= len(args):
        print(f"Usage: {flag} VALUE")
        sys.exit(1)
    return args[idx + 1]


def parse_args(args):
    """Build the effective config from the config file and CLI flags."""
    path = _flag_value(args, "--config") if "--config" in args else None
    cfg = load_config(path)

    if "--port" in args:
        value = _flag_value(args, "--port")
        if not value.isdigit():
            print(f"Invalid port: {value}")
            sys.exit(1)
        cfg["port"] = int(value)
    if "--server" in args:
        cfg["server_path"] = _flag_value(args, "--server")
    if "--no-server" in args:
        cfg["server_path"] = None
    return cfg, path


def main(argv=None):
    args = sys.argv[1:] if argv is None else list(argv)

    if "--help" in args or "-h" in args:
        print(USAGE_TEXT)
        sys.exit(0)

    if "--install" in args:
        cmd_install()
        sys.exit(0)

    cfg, path = parse_args(args)

    if "--init-config" in args:
        written = save_config(default_config(), path)
        print(f"✅ Wrote {written}")
        sys.exit(0)

    setup_logging(cfg["log_level"], cfg["log_file"])

    if "--test" in args:
        sys.exit(cmd_test(cfg))

    logger.info("momd Menu Bar Agent %s", __version__)
    logger.info("  Backend:  %s", base_url(cfg))
    logger.info("  Server:   %s", cfg["server_path"] or "(external)")

    # rumps/AppKit only load when the menu bar is actually launched.
    from .app import run_menubar
    return run_menubar(cfg)
