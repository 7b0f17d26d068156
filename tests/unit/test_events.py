"""Unit tests for abctl.events module."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from abctl.constants import AIRBYTE_BOOTLOADER_POD, AIRBYTE_NAMESPACE
from abctl.errors import KubernetesError
from abctl.events import ClusterEvent, EventWatcher, iter_json_objects, parse_log_line

START = datetime(2024, 12, 20, 16, 0, 0, tzinfo=timezone.utc)
LATER = (START + timedelta(minutes=1)).strftime("%Y-%m-%dT%H:%M:%SZ")
EARLIER = (START - timedelta(minutes=1)).strftime("%Y-%m-%dT%H:%M:%SZ")


def _event(type_="Normal", reason="Scheduled", message="msg", count=1, pod="airbyte-abctl-server-1",
           timestamp=LATER) -> dict:
    return {
        "metadata": {"name": f"{pod}.17f", "namespace": AIRBYTE_NAMESPACE},
        "type": type_,
        "reason": reason,
        "message": message,
        "count": count,
        "lastTimestamp": timestamp,
        "involvedObject": {"kind": "Pod", "name": pod, "namespace": AIRBYTE_NAMESPACE},
    }


def _proc(lines=(), returncode=0):
    proc = MagicMock()
    proc.stdout = iter(lines)
    proc.returncode = returncode
    proc.poll.return_value = returncode
    return proc


@pytest.fixture
def k8s():
    return MagicMock()


@pytest.fixture
def watcher(k8s):
    return EventWatcher(k8s, since=START, bootloader_delay=0)


class TestClusterEvent:
    """Tests for event parsing."""

    def test_from_dict(self):
        """Test the fields of a core/v1 event are read."""
        event = ClusterEvent.from_dict(_event(type_="Warning", reason="BackOff", count=7))

        assert (event.type, event.reason, event.count) == ("Warning", "BackOff", 7)
        assert event.object_name == "airbyte-abctl-server-1"
        assert event.object_namespace == AIRBYTE_NAMESPACE
        assert event.timestamp == START + timedelta(minutes=1)

    def test_event_time_fallback(self):
        """Test eventTime is used when lastTimestamp is missing."""
        data = _event(timestamp=None)
        data["eventTime"] = "2024-12-20T16:05:00.123456Z"
        assert ClusterEvent.from_dict(data).timestamp.minute == 5

    def test_missing_fields(self):
        """Test an empty object yields an event without timestamp."""
        event = ClusterEvent.from_dict({})
        assert event.timestamp is None
        assert event.count == 0


class TestParseLogLine:
    """Tests for bootloader log lines."""

    def test_json_line(self):
        """Test level and message are read from structured lines."""
        line = parse_log_line(json.dumps({"level": "ERROR", "message": "Unable to bootstrap Airbyte environment."}))
        assert (line.level, line.message) == ("ERROR", "Unable to bootstrap Airbyte environment.")

    def test_plain_line(self):
        """Test other lines keep their full text."""
        line = parse_log_line("Waiting for database...\n")
        assert (line.level, line.message) == ("", "Waiting for database...")


class TestIterJsonObjects:
    """Tests for splitting the watch output into objects."""

    def test_indented_objects(self):
        """Test consecutive pretty-printed objects are yielded one by one."""
        text = json.dumps({"a": 1}, indent=4) + "\n" + json.dumps({"b": {"c": 2}}, indent=4) + "\n"
        lines = text.splitlines(keepends=True)
        assert list(iter_json_objects(lines)) == [{"a": 1}, {"b": {"c": 2}}]

    def test_compact_objects_on_one_line(self):
        """Test objects without separators are split."""
        assert list(iter_json_objects(['{"a": 1}{"b": 2}\n'])) == [{"a": 1}, {"b": 2}]

    def test_truncated_object(self):
        """Test an unterminated trailing object is dropped."""
        assert list(iter_json_objects(['{"a": 1}\n', '{"b":\n'])) == [{"a": 1}]


class TestHandleEvent:
    """Tests for the per-event output."""

    def test_old_events_skipped(self, watcher, k8s, capsys):
        """Test events from before the watcher started are ignored."""
        watcher.handle_event(ClusterEvent.from_dict(_event(type_="Warning", reason="BackOff", count=9,
                                                           timestamp=EARLIER)))
        k8s.logs_get.assert_not_called()
        assert capsys.readouterr().err == ""

    def test_normal_backoff_warns(self, watcher, capsys):
        """Test a normal back-off event is shown as a warning."""
        watcher.handle_event(ClusterEvent.from_dict(_event(reason="BackOff", message="Back-off pulling image")))
        assert "Back-off pulling image" in capsys.readouterr().err

    def test_normal_event_logged(self, watcher, capsys, caplog):
        """Test other normal events only reach the debug log."""
        with caplog.at_level(logging.DEBUG, logger="abctl"):
            watcher.handle_event(ClusterEvent.from_dict(_event(message="Successfully assigned pod")))
        assert capsys.readouterr().err == ""
        assert "Successfully assigned pod" in caplog.text

    def test_pulling_is_reported(self, k8s):
        """Test image pulls are passed to the reporter."""
        reporter = MagicMock()
        watcher = EventWatcher(k8s, since=START, reporter=reporter)
        watcher.handle_event(ClusterEvent.from_dict(_event(reason="Pulling", message='Pulling image "airbyte/server"')))
        reporter.assert_called_once_with('Pulling image "airbyte/server"')

    def test_warning_below_threshold_is_debug(self, watcher, capsys):
        """Test an infrequent warning is not shown."""
        watcher.handle_event(ClusterEvent.from_dict(_event(type_="Warning", reason="FailedMount", count=2)))
        assert capsys.readouterr().err == ""

    def test_repeated_warning_shown(self, watcher, capsys):
        """Test a warning seen more than five times is shown."""
        watcher.handle_event(ClusterEvent.from_dict(
            _event(type_="Warning", reason="FailedMount", message="volume not found", count=6)))
        err = capsys.readouterr().err
        assert "Encountered an issue deploying Airbyte" in err
        assert "Reason: FailedMount" in err
        assert "Count: 6" in err

    def test_rate_limited_pull_always_shown(self, watcher, capsys):
        """Test a registry rate limit is shown on first sight."""
        message = 'Failed to pull image "airbyte/server": 429 Too Many Requests'
        watcher.handle_event(ClusterEvent.from_dict(_event(type_="Warning", reason="Failed", message=message)))
        assert "429 Too Many Requests" in capsys.readouterr().err

    def test_warning_backoff_includes_logs(self, watcher, k8s, capsys):
        """Test a crash-looping pod's logs are attached."""
        k8s.logs_get.return_value = "database unavailable\n"
        watcher.handle_event(ClusterEvent.from_dict(_event(type_="Warning", reason="BackOff", count=8)))
        k8s.logs_get.assert_called_once_with(AIRBYTE_NAMESPACE, "airbyte-abctl-server-1")
        assert "Logs: database unavailable" in capsys.readouterr().err

    def test_warning_backoff_log_failure(self, watcher, k8s, capsys):
        """Test an unreadable log is described instead."""
        k8s.logs_get.side_effect = KubernetesError("kubectl logs failed")
        watcher.handle_event(ClusterEvent.from_dict(_event(type_="Warning", reason="BackOff", count=8)))
        assert "Unable to retrieve logs" in capsys.readouterr().err

    def test_bootloader_started_follows_logs_once(self, watcher):
        """Test the bootloader log stream is started a single time."""
        watcher._spawn = MagicMock()
        started = ClusterEvent.from_dict(_event(reason="Started", pod=AIRBYTE_BOOTLOADER_POD))
        watcher.handle_event(started)
        watcher.handle_event(started)
        watcher._spawn.assert_called_once_with(watcher._stream_bootloader_logs, "bootloader-logs")


class TestStreamPodLogs:
    """Tests for following the bootloader logs."""

    def test_error_lines_printed(self, watcher, k8s, capsys):
        """Test ERROR lines are shown and others are not."""
        lines = [
            json.dumps({"level": "INFO", "message": "Starting"}) + "\n",
            json.dumps({"level": "ERROR", "message": "Unable to connect to the database."}) + "\n",
        ]
        k8s.logs_stream.return_value = _proc(lines)

        assert watcher.stream_pod_logs(AIRBYTE_BOOTLOADER_POD, "airbyte-bootloader") is True

        err = capsys.readouterr().err
        assert "airbyte-bootloader: Unable to connect to the database." in err
        assert "Starting" not in err

    def test_failed_stream(self, watcher, k8s):
        """Test a non-zero exit asks for a retry."""
        k8s.logs_stream.return_value = _proc(returncode=1)
        assert watcher.stream_pod_logs(AIRBYTE_BOOTLOADER_POD, "airbyte-bootloader") is False

    def test_bootloader_retries_until_stream_succeeds(self, watcher, k8s):
        """Test the bootloader stream is retried after errors."""
        k8s.logs_stream.side_effect = [KubernetesError("pod not ready"), _proc(returncode=1), _proc()]

        watcher._stream_bootloader_logs()

        assert k8s.logs_stream.call_count == 3


class TestWatcherLifecycle:
    """Tests for starting and stopping the background watch."""

    def test_events_handled_then_stopped(self, k8s):
        """Test streamed events are handled and the watch process terminated on exit."""
        proc = _proc([json.dumps(_event(reason="Pulling", message="Pulling image"), indent=2) + "\n"])
        proc.poll.return_value = None
        k8s.events_watch.return_value = proc
        reporter = MagicMock()

        with EventWatcher(k8s, since=START, reporter=reporter) as watcher:
            for thread in list(watcher._threads):
                thread.join(timeout=2)

        k8s.events_watch.assert_called_once_with(AIRBYTE_NAMESPACE)
        reporter.assert_called_once_with("Pulling image")
        proc.terminate.assert_called_once()
        assert watcher.stopped.is_set()

    def test_watch_failure_is_a_warning(self, k8s, capsys):
        """Test an unavailable watch does not fail the install."""
        k8s.events_watch.side_effect = KubernetesError("unable to start kubectl get")

        with EventWatcher(k8s, since=START) as watcher:
            for thread in list(watcher._threads):
                thread.join(timeout=2)

        assert "Unable to watch airbyte events" in capsys.readouterr().err
