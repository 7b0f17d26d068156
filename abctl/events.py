# /*
# Copyright 2026 The Grove Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Kubernetes event watcher shown while the Airbyte chart deploys.

The watcher runs ``kubectl get events --watch-only`` in a background thread
and turns each event into console output: back-offs and repeated warnings
are surfaced to the user, everything else goes to the debug log. Once the
bootloader pod has started, its logs are followed as well so migration
errors are visible before helm gives up.
"""

from __future__ import annotations

import json
import subprocess
import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from rich.markup import escape

from abctl import console, logger
from abctl.constants import (
    AIRBYTE_BOOTLOADER_POD,
    AIRBYTE_NAMESPACE,
    BOOTLOADER_LOG_DELAY_SECONDS,
    EVENT_WARNING_COUNT_THRESHOLD,
    IMAGE_PULL_FAILED_SENTINEL,
    RATE_LIMITED_SENTINEL,
    WATCHER_JOIN_TIMEOUT_SECONDS,
)
from abctl.errors import KubernetesError
from abctl.k8s import KubernetesClient

_BOOTLOADER_PREFIX = "airbyte-bootloader"


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class ClusterEvent:
    """One core/v1 Event as printed by ``kubectl get events -o json``."""

    name: str
    type: str
    reason: str
    message: str
    count: int = 0
    timestamp: datetime | None = None
    object_name: str = ""
    object_namespace: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClusterEvent:
        metadata = data.get("metadata") or {}
        involved = data.get("involvedObject") or {}
        timestamp = (
            _parse_timestamp(data.get("lastTimestamp"))
            or _parse_timestamp(data.get("eventTime"))
            or _parse_timestamp(metadata.get("creationTimestamp"))
        )
        return cls(
            name=metadata.get("name", ""),
            type=data.get("type", ""),
            reason=data.get("reason", ""),
            message=data.get("message", ""),
            count=int(data.get("count") or 0),
            timestamp=timestamp,
            object_name=involved.get("name", ""),
            object_namespace=involved.get("namespace", ""),
        )


@dataclass(frozen=True)
class LogLine:
    level: str
    message: str


def parse_log_line(line: str) -> LogLine:
    """Parse a structured (JSON) platform log line; other lines keep their full text."""
    text = line.rstrip("\n")
    try:
        data = json.loads(text)
    except ValueError:
        return LogLine(level="", message=text)
    if not isinstance(data, dict):
        return LogLine(level="", message=text)
    return LogLine(level=str(data.get("level", "")), message=str(data.get("message", "")))


def iter_json_objects(lines: Iterable[str]) -> Iterator[dict[str, Any]]:
    """Yield each JSON object from a stream of concatenated, possibly indented, objects."""
    decoder = json.JSONDecoder()
    buffer = ""
    for line in lines:
        buffer += line
        while True:
            text = buffer.lstrip()
            if not text:
                buffer = ""
                break
            try:
                obj, end = decoder.raw_decode(text)
            except ValueError:
                # incomplete object, wait for more lines
                buffer = text
                break
            buffer = text[end:]
            if isinstance(obj, dict):
                yield obj


class EventWatcher:
    """Background watcher for events in one namespace.

    Use as a context manager around the install steps; events older than
    ``since`` are ignored.

    Args:
        k8s: Kubernetes client the watch and log processes are started with.
        namespace: Namespace to watch.
        since: Events before this instant are skipped; defaults to now.
        reporter: Receives progress text (image pulls).
        bootloader_delay: Seconds to wait before (re)trying the bootloader log stream.
    """

    def __init__(
        self,
        k8s: KubernetesClient,
        namespace: str = AIRBYTE_NAMESPACE,
        since: datetime | None = None,
        reporter: Callable[[str], None] | None = None,
        bootloader_delay: float = BOOTLOADER_LOG_DELAY_SECONDS,
    ) -> None:
        self.k8s = k8s
        self.namespace = namespace
        self.since = since or datetime.now(timezone.utc)
        self.report = reporter
        self.bootloader_delay = bootloader_delay
        self.stopped = threading.Event()
        self._lock = threading.Lock()
        self._procs: list[subprocess.Popen] = []
        self._threads: list[threading.Thread] = []
        self._bootloader_streaming = False

    def __enter__(self) -> EventWatcher:
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()

    def start(self) -> None:
        logger.debug("event watcher started")
        self._spawn(self._watch_events, "event-watcher")

    def stop(self) -> None:
        """Stop the watch and any log stream, then join the worker threads."""
        self.stopped.set()
        with self._lock:
            procs = list(self._procs)
            threads = list(self._threads)
        for proc in procs:
            if proc.poll() is None:
                proc.terminate()
        for thread in threads:
            thread.join(timeout=WATCHER_JOIN_TIMEOUT_SECONDS)
        logger.debug("event watcher stopped")

    def _spawn(self, target: Callable[[], None], name: str) -> None:
        thread = threading.Thread(target=target, name=name, daemon=True)
        with self._lock:
            self._threads.append(thread)
        thread.start()

    def _track(self, proc: subprocess.Popen) -> bool:
        """Register a process for termination; False if already stopping."""
        with self._lock:
            if self.stopped.is_set():
                proc.terminate()
                return False
            self._procs.append(proc)
        return True

    def _watch_events(self) -> None:
        try:
            proc = self.k8s.events_watch(self.namespace)
        except KubernetesError as err:
            console.print(f"[yellow]⚠️  Unable to watch airbyte events\n  {err}[/yellow]")
            return
        if not self._track(proc):
            return

        count = 0
        assert proc.stdout is not None
        for data in iter_json_objects(proc.stdout):
            if self.stopped.is_set():
                break
            count += 1
            self.handle_event(ClusterEvent.from_dict(data))
        proc.wait()
        logger.debug("event watcher completed after %d events", count)

    def handle_event(self, event: ClusterEvent) -> None:
        """Turn one event into console or debug output."""
        if event.timestamp is not None and event.timestamp < self.since:
            return

        kind = event.type.lower()
        if kind == "normal":
            if event.reason.lower() == "backoff":
                console.print(f"[yellow]⚠️  {escape(event.message)}[/yellow]")
            elif event.reason == "Started" and event.object_name == AIRBYTE_BOOTLOADER_POD:
                self._follow_bootloader()
            else:
                if event.reason == "Pulling" and self.report is not None:
                    self.report(event.message)
                logger.debug("%s", event.message)
        elif kind == "warning":
            self._warn(event)
        else:
            logger.debug("received an unsupported event type: %s", event.type)

    def _warn(self, event: ClusterEvent) -> None:
        warn = event.count > EVENT_WARNING_COUNT_THRESHOLD
        logs = ""
        if event.reason.lower() == "backoff":
            try:
                logs = self.k8s.logs_get(event.object_namespace or self.namespace, event.object_name)
            except KubernetesError as err:
                logs = f"Unable to retrieve logs for {event.object_namespace}:{event.object_name}\n  {err}"
        elif IMAGE_PULL_FAILED_SENTINEL in event.message and RATE_LIMITED_SENTINEL in event.message:
            # rate-limited pulls slow the install down until helm times out
            warn = True

        text = (
            "Encountered an issue deploying Airbyte:\n"
            f"  Pod: {event.object_name}\n"
            f"  Reason: {event.reason}\n"
            f"  Message: {event.message}\n"
            f"  Count: {event.count}"
        )
        if logs:
            text += f"\n  Logs: {logs.strip()}"
        if warn:
            console.print(f"[yellow]⚠️  {escape(text)}[/yellow]")
        else:
            logger.debug(text)

    def _follow_bootloader(self) -> None:
        with self._lock:
            if self._bootloader_streaming:
                return
            self._bootloader_streaming = True
        self._spawn(self._stream_bootloader_logs, "bootloader-logs")

    def _stream_bootloader_logs(self) -> None:
        logger.debug("start streaming bootloader logs")
        since = datetime.now(timezone.utc)
        # the pod needs a moment before its logs can be followed
        while not self.stopped.wait(self.bootloader_delay):
            try:
                if self.stream_pod_logs(AIRBYTE_BOOTLOADER_POD, _BOOTLOADER_PREFIX, since):
                    break
            except KubernetesError as err:
                logger.debug("error streaming bootloader logs, will retry: %s", err)
        logger.debug("done streaming bootloader logs")

    def stream_pod_logs(self, pod: str, prefix: str, since: datetime | None = None) -> bool:
        """Follow a pod's logs until it exits; ERROR lines are printed.

        Returns:
            True if the log stream ended cleanly.

        Raises:
            KubernetesError: If the log stream cannot be started.
        """
        proc = self.k8s.logs_stream(self.namespace, pod, since)
        if not self._track(proc):
            return True
        assert proc.stdout is not None
        for raw in proc.stdout:
            line = parse_log_line(raw)
            if line.level == "ERROR":
                console.print(f"[red]❌ {prefix}: {escape(line.message)}[/red]")
            else:
                logger.debug("%s: %s", prefix, line.message)
        proc.wait()
        if proc.returncode != 0 and not self.stopped.is_set():
            logger.debug("log stream for %s exited with status %d", pod, proc.returncode)
            return False
        return True
