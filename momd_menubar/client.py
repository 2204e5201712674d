"""
HTTP client for the backend's menu protocol.

    GET /        → menu document (JSON)
    GET /<path>  → callback; the body is opaque diagnostic text

Nothing here retries. The controller decides whether a failed fetch is
worth another attempt.
"""

import logging

import requests

from .config import REQUEST_TIMEOUT
from .errors import BadStatus, DecodeError, EmptyResponse, Unreachable
from .menu import MenuDocument

logger = logging.getLogger(__name__)

USER_AGENT = "momd-menubar/0.1"


def _get(url, timeout, accept):
    try:
        resp = requests.get(url, headers={
            "Accept":     accept,
            "User-Agent": USER_AGENT,
        }, timeout=timeout)
    except requests.exceptions.Timeout as e:
        raise Unreachable(url, "request timed out") from e
    except requests.exceptions.ConnectionError as e:
        raise Unreachable(url, "connection failed") from e
    except requests.exceptions.RequestException as e:
        raise Unreachable(url, str(e)[:80]) from e
    return resp


def fetch_menu(base_url, timeout=REQUEST_TIMEOUT):
    url = base_url.rstrip("/") + "/"
    logger.debug("Fetching menu from %s", url)
    resp = _get(url, timeout, "application/json")
    if not resp.ok:
        raise BadStatus(url, resp.status_code)

    if not resp.content or not resp.content.strip():
        raise EmptyResponse(url)

    try:
        data = resp.json()
    except ValueError as e:
        raise DecodeError(str(e)) from e
    return MenuDocument.from_dict(data)


def invoke_callback(base_url, path, timeout=REQUEST_TIMEOUT):
    """
    Call a backend-relative path and return the response body as text.
    An error status is logged, not raised: the body is diagnostic only.
    """
    url = base_url.rstrip("/") + path
    logger.info("Invoking menu item action: %s", path)
    resp = _get(url, timeout, "*/*")
    if not resp.ok:
        logger.warning("Callback %s returned HTTP %s", path, resp.status_code)
    return resp.text
