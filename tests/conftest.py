"""Shared fixtures: an in-process stand-in for the rumps UI layer."""
import pytest

from momd_menubar.config import default_config


class FakeUI:
    """Runs call_on_main inline on whichever thread calls it."""

    def __init__(self):
        self.layouts = []
        self.errors = []
        self.quit_called = False

    def render(self, layout):
        self.layouts.append(list(layout))

    def show_error(self, message):
        self.errors.append(message)

    def call_on_main(self, fn, *args):
        fn(*args)

    def quit(self):
        self.quit_called = True


@pytest.fixture
def ui():
    return FakeUI()


@pytest.fixture
def config(tmp_path):
    cfg = default_config()
    cfg.update({
        "server_path": str(tmp_path / "momd"),
        "settle_delay": 0,
        "fetch_backoff": 0.5,
        "request_timeout": 2,
        "stop_grace": 1.0,
    })
    return cfg
