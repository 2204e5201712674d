"""
momd Menu Bar Agent
═══════════════════
A macOS menu-bar agent for a local "momd" backend. The agent launches
the backend, asks it for a menu over HTTP and shows that menu in the
status bar. Clicking an item calls back into the backend or opens a link.

SETUP
─────
  pip3 install rumps requests

  # Backend binary next to the agent (./momd, or Contents/Resources/momd
  # inside an app bundle):
  python3 -m momd_menubar

  # Already running a backend yourself:
  python3 -m momd_menubar --no-server --port 9876

HOW IT WORKS
────────────
  The backend is started as  momd -port 9876  and is expected to serve

    GET http://localhost:9876/         →  menu document (JSON)
    GET http://localhost:9876/<path>   →  callback for an item

  Items declare {"type": "callback" | "link", "onClick": ...}; a bare
  {"path": "/x"} is treated as a callback. Items with "items" become
  submenus.
"""

import logging
import signal

import rumps
from PyObjCTools.AppHelper import callAfter

from .controller import AgentController
from .menu import LOADING, MenuItem, Notice, QuitEntry, placeholder_layout

logger = logging.getLogger(__name__)

STATUS_TITLE = "☰"


# ── Menu Bar App ─────────────────────────────────────────────────

class MomdMenuBar(rumps.App):

    def __init__(self, config):
        super().__init__(STATUS_TITLE, quit_button=None)
        self.config = config
        self.controller = AgentController(self, config)

        # Never show an empty status item, even before start() runs.
        self.render(placeholder_layout(LOADING))

        # Queued until the run loop is up.
        callAfter(self.controller.start)

        # rumps.Timer fires once immediately; refresh() ignores ticks before
        # the first fetch has finished.
        refresh_s = config.get("refresh_seconds") or 0
        if refresh_s > 0:
            self.refresh_timer = rumps.Timer(self._refresh, refresh_s)
            self.refresh_timer.start()

        # Toggling the title makes macOS draw the status item right away.
        self._kickstart = rumps.Timer(self._force_redraw, 0.5)
        self._kickstart.count = 0
        self._kickstart.start()

    def _force_redraw(self, sender):
        sender.count += 1
        if sender.count >= 3:
            sender.stop()
            return
        if not self.title.endswith("\u200b"):
            self.title = self.title + "\u200b"
        else:
            self.title = self.title.rstrip("\u200b")

    def _refresh(self, _sender):
        self.controller.refresh()

    # ── UI collaborator ──────────────────────────────────────────

    def render(self, layout):
        self.menu.clear()
        self.menu = [self._entry(e) for e in layout]

    def show_error(self, message):
        rumps.alert(title="Error", message=message, ok="OK")

    def call_on_main(self, fn, *args):
        callAfter(fn, *args)

    def quit(self):
        rumps.quit_application()

    # ── Rendering ────────────────────────────────────────────────

    def _entry(self, entry):
        if entry is None:
            return None
        if isinstance(entry, Notice):
            mi = rumps.MenuItem(entry.text)
            if entry.tooltip:
                _set_tooltip(mi, entry.tooltip)
            return mi
        if isinstance(entry, QuitEntry):
            return rumps.MenuItem(entry.title, callback=self._quit, key=entry.key)
        if isinstance(entry, MenuItem):
            return self._item(entry)
        raise TypeError(f"unexpected menu entry: {entry!r}")

    def _item(self, item):
        mi = rumps.MenuItem(item.title)
        if item.description:
            _set_tooltip(mi, item.description)
        if item.is_submenu:
            for child in item.children:
                mi.add(self._item(child))
        elif item.selectable:
            mi.set_callback(self._make_select(item))
        return mi

    def _make_select(self, item):
        def cb(_):
            self.controller.select(item)
        return cb

    def _quit(self, _sender):
        self.controller.quit()


def _set_tooltip(menu_item, text):
    # rumps has no tooltip API; go through the wrapped NSMenuItem.
    menu_item._menuitem.setToolTip_(text)


# ── Entry ────────────────────────────────────────────────────────

def run_menubar(cfg):
    # Menu bar accessory, no dock icon
    from AppKit import NSApplication
    NSApplication.sharedApplication().setActivationPolicy_(1)

    app = MomdMenuBar(cfg)

    def _handle_signal(signum, _frame):
        logger.info("Received signal %s, shutting down", signum)
        app.call_on_main(app.controller.quit)

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    app.run()
    return 0
