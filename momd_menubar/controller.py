"""
Agent controller: owns the backend process and the rendered menu.

    IDLE → STARTING → AWAITING_MENU → READY → SHUTTING_DOWN → TERMINATED

The settling delay is a threading.Timer that hands off to call_on_main,
so it does not depend on the toolkit's timers.

The controller only talks to the UI through a small collaborator object:

    ui.render(layout)          replace the whole status-bar menu
    ui.show_error(message)     modal alert, blocks until dismissed
    ui.call_on_main(fn, *a)    run fn on the UI thread
    ui.quit()                  end the UI run loop

Network and process work happens on background threads; their results
come back through call_on_main and are dropped once the agent has quit.
"""

import enum
import logging
import threading
import time

from . import client
from .config import base_url, default_config
from .dispatch import ActionDispatcher
from .errors import FetchError, LaunchError, Unreachable
from .menu import LOADING, menu_layout, placeholder_layout
from .supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

MAX_BACKOFF = 4.0


class AgentState(enum.Enum):
    IDLE          = "idle"
    STARTING      = "starting"
    AWAITING_MENU = "awaiting menu"
    READY         = "ready"
    SHUTTING_DOWN = "shutting down"
    TERMINATED    = "terminated"


class AgentController:

    def __init__(self, ui, config=None, supervisor=None, dispatcher=None,
                 fetch=client.fetch_menu, sleep=time.sleep):
        self.ui       = ui
        self.config   = config or default_config()
        self.base_url = base_url(self.config)
        self.state    = AgentState.IDLE
        self.document = None
        self.error    = None
        self.supervisor = supervisor or ProcessSupervisor(self.config["stop_grace"])
        self.dispatcher = dispatcher or ActionDispatcher(
            self.base_url, self.report_error,
            timeout=self.config["request_timeout"],
        )
        self._fetch  = fetch
        self._sleep  = sleep
        self._closed = threading.Event()
        self.settle_timer = None
        self.fetch_thread = None

    @property
    def alive(self):
        return not self._closed.is_set()

    # ── Startup ──────────────────────────────────────────────────

    def start(self):
        if self.state is not AgentState.IDLE:
            raise RuntimeError(f"agent already started ({self.state.value})")
        self.state = AgentState.STARTING
        self.ui.render(placeholder_layout(LOADING))

        path = self.config.get("server_path")
        if path:
            try:
                self.supervisor.start(path, ["-port", str(self.config["port"])])
            except LaunchError as e:
                logger.error("%s", e)
                self.ui.show_error(str(e))
        else:
            logger.info("No server_path configured; using backend at %s", self.base_url)

        self.settle_timer = threading.Timer(
            self.config["settle_delay"], self.ui.call_on_main, args=(self._begin_fetch,),
        )
        self.settle_timer.daemon = True
        self.settle_timer.start()

    def _begin_fetch(self):
        if not self.alive:
            return
        self.state = AgentState.AWAITING_MENU
        return self._spawn_fetch()

    # ── Fetch ────────────────────────────────────────────────────

    def refresh(self):
        """Re-fetch the menu. Ignored until the first fetch has finished."""
        if self.state is not AgentState.READY:
            logger.debug("Skipping refresh while %s", self.state.value)
            return None
        return self._spawn_fetch()

    def _spawn_fetch(self):
        t = threading.Thread(target=self._fetch_worker, daemon=True, name="menu-fetch")
        self.fetch_thread = t
        t.start()
        return t

    def _fetch_worker(self):
        attempts = max(1, int(self.config["fetch_attempts"]))
        delay = self.config["fetch_backoff"]
        for attempt in range(1, attempts + 1):
            if not self.alive:
                return
            try:
                doc = self._fetch(self.base_url, timeout=self.config["request_timeout"])
            except Unreachable as e:
                if attempt == attempts:
                    self.ui.call_on_main(self._apply_error, e)
                    return
                logger.info("Backend not ready (attempt %d/%d): %s", attempt, attempts, e)
                self._sleep(delay)
                delay = min(delay * 2, MAX_BACKOFF)
            except FetchError as e:
                self.ui.call_on_main(self._apply_error, e)
                return
            else:
                self.ui.call_on_main(self._apply_menu, doc)
                return

    def _apply_menu(self, document):
        if not self.alive:
            logger.debug("Dropping menu fetched after quit")
            return
        self.document = document
        self.error = None
        self.ui.render(menu_layout(document))
        self.state = AgentState.READY
        logger.info("Menu built with %d items", len(document.items))

    def _apply_error(self, error):
        if not self.alive:
            logger.debug("Dropping fetch error after quit: %s", error)
            return
        message = f"Failed to fetch menu: {error}"
        self.error = error
        self.state = AgentState.READY
        if self.document is not None:
            # Refresh failed: keep serving the last good menu.
            logger.warning("%s (keeping previous menu)", message)
            return
        logger.error(message)
        self.ui.render(placeholder_layout(message))
        self.ui.show_error(message)

    # ── Actions ──────────────────────────────────────────────────

    def select(self, item):
        """Click handler for a rendered menu item."""
        request = item.action_request()
        logger.debug("Selected %r → %s %s", item.title, request.kind.value, request.target)
        return self.dispatcher.dispatch(request)

    def report_error(self, message):
        """Thread-safe: show an error on the UI thread if still running."""
        self.ui.call_on_main(self._show_error, message)

    def _show_error(self, message):
        if self.alive:
            self.ui.show_error(message)

    # ── Shutdown ─────────────────────────────────────────────────

    def quit(self):
        if not self.alive:
            return
        self.state = AgentState.SHUTTING_DOWN
        self._closed.set()
        if self.settle_timer is not None:
            self.settle_timer.cancel()
        try:
            self.supervisor.stop()
        except OSError as e:
            logger.error("Failed to stop server: %s", e)
        finally:
            self.state = AgentState.TERMINATED
            self.ui.quit()
