"""Tests for the agent controller state machine."""
import threading
import time
from unittest.mock import Mock

import pytest

from momd_menubar.controller import AgentController, AgentState
from momd_menubar.errors import BinaryNotFound, DecodeError, EmptyResponse, Unreachable
from momd_menubar.menu import LOADING, QUIT, SEPARATOR, MenuDocument, Notice, menu_layout

DOC = MenuDocument.from_dict({"title": "Root", "items": [
    {"type": "callback", "title": "Ping", "onClick": "/ping"},
]})


@pytest.fixture
def supervisor():
    return Mock()


@pytest.fixture
def dispatcher():
    return Mock()


@pytest.fixture
def fetch():
    return Mock(return_value=DOC)


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def controller(ui, config, supervisor, dispatcher, fetch, sleep):
    return AgentController(ui, config, supervisor=supervisor, dispatcher=dispatcher,
                           fetch=fetch, sleep=sleep)


def finish_fetch(controller):
    controller.settle_timer.join(5)
    t = controller.fetch_thread
    t.join(5)
    assert not t.is_alive()


class TestStartup:

    def test_placeholder_then_launch_then_delay(self, controller, ui, config, supervisor, fetch):
        config["settle_delay"] = 1.5
        controller.start()
        assert ui.layouts == [[Notice(LOADING), SEPARATOR, QUIT]]
        supervisor.start.assert_called_once_with(config["server_path"], ["-port", "9876"])
        assert controller.state is AgentState.STARTING
        assert controller.settle_timer.interval == 1.5
        fetch.assert_not_called()
        controller.quit()

    def test_fetch_waits_for_settle_delay(self, controller, ui, config, fetch):
        config["settle_delay"] = 0.3
        fetched_at = []
        fetch.side_effect = lambda url, timeout: fetched_at.append(time.monotonic()) or DOC
        started = time.monotonic()
        controller.start()
        fetch.assert_not_called()
        finish_fetch(controller)
        assert len(fetched_at) == 1
        assert fetched_at[0] - started >= 0.3
        assert controller.document is DOC

    def test_fetch_runs_in_awaiting_menu(self, controller, fetch):
        seen = []
        fetch.side_effect = lambda url, timeout: seen.append(controller.state) or DOC
        controller.start()
        finish_fetch(controller)
        assert seen == [AgentState.AWAITING_MENU]
        assert controller.state is AgentState.READY

    def test_fetch_after_delay_builds_menu(self, controller, ui, fetch):
        controller.start()
        finish_fetch(controller)
        fetch.assert_called_once_with(controller.base_url, timeout=2)
        assert ui.layouts[-1] == menu_layout(DOC)
        assert controller.document is DOC
        assert controller.state is AgentState.READY
        assert ui.errors == []

    def test_launch_failure_is_reported_not_fatal(self, controller, ui, supervisor):
        supervisor.start.side_effect = BinaryNotFound("/nope/momd")
        controller.start()
        assert ui.errors == ["Server binary not found at: /nope/momd"]
        finish_fetch(controller)
        assert controller.document is DOC

    def test_external_backend_skips_supervisor(self, controller, ui, config, supervisor):
        config["server_path"] = None
        controller.start()
        supervisor.start.assert_not_called()
        finish_fetch(controller)
        assert controller.document is DOC

    def test_start_twice_is_an_error(self, controller):
        controller.start()
        with pytest.raises(RuntimeError):
            controller.start()


class TestFetchFailures:

    @pytest.mark.parametrize("error", [
        EmptyResponse("http://localhost:9876/"),
        DecodeError("Expecting value"),
    ])
    def test_degraded_menu_without_retry(self, controller, ui, fetch, sleep, error):
        fetch.side_effect = error
        controller.start()
        finish_fetch(controller)
        assert fetch.call_count == 1
        sleep.assert_not_called()
        notice, sep, quit_entry = ui.layouts[-1]
        assert notice.text.startswith("Failed to fetch menu:")
        assert (sep, quit_entry) == (SEPARATOR, QUIT)
        assert ui.errors == [notice.text]
        assert controller.state is AgentState.READY

    def test_unreachable_retries_with_backoff(self, controller, ui, fetch, sleep):
        down = Unreachable("http://localhost:9876/", "connection failed")
        fetch.side_effect = [down, down, DOC]
        controller.start()
        finish_fetch(controller)
        assert fetch.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0]
        assert controller.document is DOC
        assert ui.errors == []

    def test_unreachable_gives_up(self, controller, ui, config, fetch):
        config["fetch_attempts"] = 3
        fetch.side_effect = Unreachable("http://localhost:9876/", "connection failed")
        controller.start()
        finish_fetch(controller)
        assert fetch.call_count == 3
        assert len(ui.errors) == 1
        assert "connection failed" in ui.errors[0]

    def test_single_attempt_disables_retry(self, controller, ui, config, fetch, sleep):
        config["fetch_attempts"] = 1
        fetch.side_effect = Unreachable("http://localhost:9876/", "connection failed")
        controller.start()
        finish_fetch(controller)
        assert fetch.call_count == 1
        sleep.assert_not_called()

    def test_failed_refresh_keeps_previous_menu(self, controller, ui, fetch):
        controller.start()
        finish_fetch(controller)
        rendered = len(ui.layouts)
        fetch.side_effect = DecodeError("bad")
        controller.refresh().join(5)
        assert len(ui.layouts) == rendered
        assert controller.document is DOC
        assert ui.errors == []

    def test_refresh_replaces_document(self, controller, ui, fetch):
        controller.start()
        finish_fetch(controller)
        newer = MenuDocument.from_dict({"items": [{"title": "Other"}]})
        fetch.return_value = newer
        controller.refresh().join(5)
        assert controller.document is newer
        assert ui.layouts[-1] == menu_layout(newer)

    def test_refresh_before_start_is_ignored(self, controller, fetch):
        assert controller.refresh() is None
        assert controller.fetch_thread is None
        fetch.assert_not_called()

    def test_refresh_during_settle_delay_is_ignored(self, controller, config, fetch):
        config["settle_delay"] = 1.5
        controller.start()
        assert controller.refresh() is None
        assert controller.fetch_thread is None
        fetch.assert_not_called()
        controller.quit()


class TestSelection:

    def test_select_dispatches_detached_request(self, controller, dispatcher):
        item = DOC.items[0]
        controller.select(item)
        dispatcher.dispatch.assert_called_once_with(item.action_request())

    def test_report_error_shows_message(self, controller, ui):
        controller.report_error("Failed to invoke action: boom")
        assert ui.errors == ["Failed to invoke action: boom"]


class TestShutdown:

    def test_quit_stops_server_first(self, controller, ui, supervisor):
        order = []
        supervisor.stop.side_effect = lambda: order.append("stop")
        ui.quit = lambda: order.append("quit")
        controller.start()
        controller.quit()
        assert order == ["stop", "quit"]
        assert controller.state is AgentState.TERMINATED

    def test_quit_without_start(self, controller, ui, supervisor):
        controller.quit()
        supervisor.stop.assert_called_once_with()
        assert ui.quit_called

    def test_quit_is_idempotent(self, controller, supervisor):
        controller.quit()
        controller.quit()
        assert supervisor.stop.call_count == 1

    def test_results_after_quit_are_dropped(self, controller, ui, fetch):
        release = threading.Event()
        fetching = threading.Event()

        def slow_fetch(url, timeout):
            fetching.set()
            release.wait(5)
            return DOC

        fetch.side_effect = slow_fetch
        controller.start()
        controller.settle_timer.join(5)
        assert fetching.wait(5)
        controller.quit()
        release.set()
        controller.fetch_thread.join(5)
        assert ui.layouts == [[Notice(LOADING), SEPARATOR, QUIT]]
        assert controller.document is None
        assert controller.state is AgentState.TERMINATED

    def test_errors_after_quit_are_dropped(self, controller, ui):
        controller.quit()
        controller.report_error("late")
        assert ui.errors == []

    def test_quit_during_settle_delay_cancels_fetch(self, controller, config, fetch):
        config["settle_delay"] = 0.2
        controller.start()
        controller.quit()
        time.sleep(0.4)
        assert not controller.settle_timer.is_alive()
        assert controller.fetch_thread is None
        fetch.assert_not_called()
