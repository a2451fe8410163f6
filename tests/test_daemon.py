from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from cc_sidecar import daemon
from cc_sidecar.config import SidecarSettings
from cc_sidecar.publisher import EVENT_COMPLETED
from cc_sidecar.session import Tracker
from cc_sidecar.storage import ChromaStore


class BlockingService:
    def __init__(self) -> None:
        self.started = threading.Event()
        self._stop = threading.Event()
        self.stop_calls = 0

    def start(self) -> None:
        self.started.set()
        self._stop.wait(10)

    def stop(self) -> None:
        self.stop_calls += 1
        self._stop.set()


def test_run_starts_and_stops_services() -> None:
    services = [BlockingService(), BlockingService()]
    shutdown = threading.Event()

    runner = threading.Thread(target=daemon.run, args=(services, shutdown), daemon=True)
    runner.start()
    for service in services:
        assert service.started.wait(5)

    shutdown.set()
    runner.join(timeout=5)

    assert not runner.is_alive()
    assert [service.stop_calls for service in services] == [1, 1]


def test_build_tracker_publishes_completions(tmp_path: Path, store: ChromaStore) -> None:
    transcript = tmp_path / "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee.jsonl"
    transcript.write_text(
        '{"type":"assistant","sessionId":"S9","message":{"role":"assistant","content":[]}}\n',
        encoding="utf-8",
    )
    settings = SidecarSettings(idle_threshold=0.01, poll_interval=1)
    tracker = daemon.build_tracker(settings, store, process_check=lambda _path: False)
    assert isinstance(tracker, Tracker)

    tracker.touch(str(transcript))
    time.sleep(0.05)
    tracker.check()

    events = store.search_events(filters={"event_type": EVENT_COMPLETED})
    assert [event.session_id for event in events] == ["S9"]


def test_main_exits_on_invalid_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CC_SIDECAR_POLL_INTERVAL", "0")

    with pytest.raises(SystemExit) as excinfo:
        daemon.main([])

    assert excinfo.value.code == 1


def test_main_exits_when_watch_dir_missing(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, stub_client
) -> None:
    monkeypatch.setenv("CC_SIDECAR_WATCH_DIR", str(tmp_path / "missing"))
    monkeypatch.setenv("CC_SIDECAR_CHROMA_PATH", str(tmp_path / "chroma"))
    monkeypatch.setattr(ChromaStore, "_default_client_factory", lambda self: stub_client)

    with pytest.raises(SystemExit) as excinfo:
        daemon.main([])

    assert excinfo.value.code == 1
