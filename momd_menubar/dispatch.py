"""
Action dispatch.

    callback  →  GET <backend><target>, body goes to the log
    link      →  open <target> with the default URL handler
    anything else → "Unknown action type" error

Every dispatch runs on its own thread so the menu's click handler
returns immediately. Errors go to ``report_error``, never back to the
caller.
"""

import logging
import threading
import webbrowser
from urllib.parse import urlparse

from . import client
from .errors import AgentError, InvalidTarget, UnknownActionType
from .menu import ActionKind

logger = logging.getLogger(__name__)


def _check_target(request):
    target = request.target
    if request.kind is ActionKind.CALLBACK:
        if not target or not target.startswith("/"):
            raise InvalidTarget("callback", target)
    elif request.kind is ActionKind.LINK:
        parsed = urlparse(target or "")
        if not parsed.scheme or not parsed.netloc:
            raise InvalidTarget("link", target)
    else:
        raise UnknownActionType(request.type_name)


class ActionDispatcher:

    def __init__(self, base_url, report_error, invoke=client.invoke_callback,
                 open_url=webbrowser.open, timeout=None):
        self.base_url     = base_url
        self.report_error = report_error
        self.invoke       = invoke
        self.open_url     = open_url
        self.timeout      = timeout

    def dispatch(self, request):
        t = threading.Thread(target=self._run, args=(request,), daemon=True,
                             name=f"dispatch-{request.kind.value}")
        t.start()
        return t

    def _run(self, request):
        try:
            _check_target(request)
            if request.kind is ActionKind.CALLBACK:
                kwargs = {"timeout": self.timeout} if self.timeout else {}
                body = self.invoke(self.base_url, request.target, **kwargs)
                logger.info("Response from %s: %s", request.target, body)
            else:
                logger.info("Opening %s", request.target)
                if not self.open_url(request.target):
                    logger.warning("No handler accepted %s", request.target)
        except AgentError as e:
            logger.error("Action failed: %s", e)
            self.report_error(f"Failed to invoke action: {e}")
