"""
ConfigWatcher 및 디바운스 상태 머신 테스트
"""

import os
import threading
import time

import pytest
from watchdog.observers import Observer

from config_reader import watcher as watcher_module
from config_reader.reload import ReloadEngine
from config_reader.session import open_session
from config_reader.settings import WatcherSettings
from config_reader.types import ConfigKind
from config_reader.watcher import ConfigWatcher, ReloadDebouncer, WatcherState
from tests.sample_data import yaml_with


def _observer_failing_for(failing_dir):
    """지정 디렉토리의 감시 스레드 시작만 실패하는 Observer (inotify 한도 초과 재현)"""
    failing_dir = os.path.realpath(failing_dir)

    class FailingObserver(Observer):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            base_emitter = self._emitter_class

            class FailingEmitter(base_emitter):
                def on_thread_start(self):
                    if os.path.realpath(self.watch.path) == failing_dir:
                        raise OSError(28, "inotify watch limit reached")
                    super().on_thread_start()

            self._emitter_class = FailingEmitter

    return FailingObserver


class TestReloadDebouncer:
    """디바운스 상태 머신 테스트 (가상 시계)"""

    def test_starts_armed(self):
        debouncer = ReloadDebouncer(quiet_interval=0.1)

        assert debouncer.state is WatcherState.ARMED
        assert debouncer.on_wake(False, now=10.0) is False
        assert debouncer.state is WatcherState.ARMED

    def test_event_enters_debouncing(self):
        debouncer = ReloadDebouncer(quiet_interval=0.1)

        assert debouncer.on_wake(True, now=0.0) is False
        assert debouncer.state is WatcherState.DEBOUNCING

    def test_reload_after_quiet_interval(self):
        debouncer = ReloadDebouncer(quiet_interval=0.1)
        debouncer.on_wake(True, now=0.0)

        assert debouncer.on_wake(False, now=0.05) is False
        assert debouncer.on_wake(False, now=0.1) is False
        assert debouncer.on_wake(False, now=0.15) is True
        assert debouncer.state is WatcherState.ARMED

    def test_burst_coalesced_into_one_reload(self):
        """조용한 구간 안의 연속 이벤트 3개 → 리로드 1회"""
        debouncer = ReloadDebouncer(quiet_interval=0.1)
        reloads = 0

        timeline = [
            (True, 0.00),
            (True, 0.05),
            (True, 0.10),
            (False, 0.15),
            (False, 0.20),
            (False, 0.25),
            (False, 0.30),
            (False, 0.35),
        ]
        for changed, now in timeline:
            if debouncer.on_wake(changed, now):
                reloads += 1

        assert reloads == 1

    def test_new_event_extends_debounce(self):
        debouncer = ReloadDebouncer(quiet_interval=0.1)
        debouncer.on_wake(True, now=0.0)
        debouncer.on_wake(True, now=0.09)

        assert debouncer.on_wake(False, now=0.15) is False
        assert debouncer.on_wake(False, now=0.2) is True

    def test_reset(self):
        debouncer = ReloadDebouncer(quiet_interval=0.1)
        debouncer.on_wake(True, now=0.0)
        debouncer.reset()

        assert debouncer.state is WatcherState.ARMED
        assert debouncer.on_wake(False, now=5.0) is False


class TestConfigWatcher:
    """감시 스레드 테스트"""

    @pytest.fixture
    def config_path(self, write_config):
        return write_config("config.yaml", yaml_with(seven=7))

    @pytest.fixture
    def engine(self, registry, config_path) -> ReloadEngine:
        return ReloadEngine(registry, [config_path])

    @pytest.fixture
    def watcher(self, engine, manual_settings):
        watcher = ConfigWatcher(engine, settings=manual_settings)
        yield watcher
        watcher.stop()

    def test_start_performs_initial_load(self, registry, watcher):
        seven = registry.get_or_create("seven", ConfigKind.INT, "t.py:1")

        watcher.start()

        assert seven.value == 7
        assert watcher.engine.pass_count == 1
        assert registry.initialized
        assert watcher.state is WatcherState.ARMED
        assert watcher.running

    def test_start_twice_rejected(self, watcher):
        watcher.start()

        with pytest.raises(RuntimeError):
            watcher.start()

    def test_burst_triggers_single_reload(self, watcher, wait_until):
        """연속 변경 3회 → 리로드 1회"""
        watcher.start()

        watcher.notify_change()
        watcher.notify_change()
        watcher.notify_change()

        assert wait_until(lambda: watcher.engine.pass_count == 2)
        time.sleep(0.3)
        assert watcher.engine.pass_count == 2

    def test_change_picks_up_new_value(
        self, registry, watcher, config_path, wait_until
    ):
        seven = registry.get_or_create("seven", ConfigKind.INT, "t.py:1")
        watcher.start()

        config_path.write_text(yaml_with(seven=8), encoding="utf-8")
        watcher.notify_change(config_path)

        assert wait_until(lambda: seven.value == 8)

    def test_new_key_after_start_loaded_without_edit(
        self, registry, watcher, wait_until
    ):
        """감시 시작 후 선언한 키는 파일 수정 없이 다음 패스에서 반영"""
        watcher.start()

        late = registry.get_or_create("list", ConfigKind.INT_LIST, "t.py:5")

        assert wait_until(lambda: late.value == (1, 2, 3))
        assert wait_until(lambda: not registry.dirty)
        assert registry.wait_until_clean(timeout=1.0)

    def test_stop_joins_thread(self, watcher):
        watcher.start()

        watcher.stop()

        assert not watcher.running
        assert watcher.state is WatcherState.STOPPED

    def test_no_reload_after_stop(self, registry, watcher):
        """stop() 반환 이후 리로드 없음"""
        watcher.start()
        watcher.stop()
        count = watcher.engine.pass_count

        watcher.notify_change()
        registry.get_or_create("late", ConfigKind.INT, "t.py:9")
        time.sleep(0.2)

        assert watcher.engine.pass_count == count

    def test_stop_without_start(self, watcher):
        watcher.stop()

        assert watcher.state is WatcherState.STOPPED

    def test_stop_from_callback_does_not_deadlock(self, watcher, wait_until):
        """리로드 콜백(감시 스레드)에서 stop() 호출"""
        watcher.start()
        watcher.engine.on_reload(lambda result: watcher.stop())

        watcher.notify_change()

        assert wait_until(lambda: not watcher.running)
        assert watcher.state is WatcherState.STOPPED

    def test_reload_exception_does_not_kill_thread(self, watcher, wait_until, caplog):
        watcher.start()
        original = watcher.engine.reload
        calls = []

        def exploding_reload():
            calls.append(True)
            if len(calls) == 1:
                raise RuntimeError("reload exploded")
            return original()

        watcher.engine.reload = exploding_reload

        watcher.notify_change()
        assert wait_until(lambda: len(calls) == 1)
        assert watcher.running

        watcher.notify_change()
        assert wait_until(lambda: len(calls) == 2)
        assert any("리로드 실패" in r.getMessage() for r in caplog.records)


class TestWatchInstall:
    """파일 감시 등록 테스트"""

    def test_watches_parent_directory_once(self, registry, write_config, fast_settings):
        first = write_config("a.yaml", "a: 1\n")
        second = write_config("b.yaml", "b: 2\n")
        engine = ReloadEngine(registry, [first, second])
        watcher = ConfigWatcher(engine, settings=fast_settings)

        watcher.start()
        try:
            assert len(watcher.watched_dirs) == 1
        finally:
            watcher.stop()

    def test_missing_directory_logged_and_skipped(
        self, registry, tmp_path, write_config, fast_settings, caplog
    ):
        """감시 등록 실패는 경고만 남기고 나머지 파일은 계속 감시"""
        present = write_config("a.yaml", "a: 1\n")
        absent = tmp_path / "missing_dir" / "b.yaml"
        engine = ReloadEngine(registry, [present, absent])
        watcher = ConfigWatcher(engine, settings=fast_settings)

        watcher.start()
        try:
            assert watcher.running
            assert len(watcher.watched_dirs) == 1
            assert any("감시 디렉토리 없음" in r.getMessage() for r in caplog.records)
        finally:
            watcher.stop()

    def test_watch_disabled_installs_nothing(self, registry, write_config):
        engine = ReloadEngine(registry, [write_config("a.yaml", "a: 1\n")])
        watcher = ConfigWatcher(
            engine, settings=WatcherSettings(poll_interval=0.02, watch_enabled=False)
        )

        watcher.start()
        try:
            assert watcher.watched_dirs == []
        finally:
            watcher.stop()

    def test_stop_is_prompt(self, registry, write_config):
        """긴 대기 주기에서도 stop()은 즉시 깨움"""
        engine = ReloadEngine(registry, [write_config("a.yaml", "a: 1\n")])
        watcher = ConfigWatcher(
            engine, settings=WatcherSettings(poll_interval=30, watch_enabled=False)
        )
        watcher.start()

        stopper = threading.Thread(target=watcher.stop)
        started = time.monotonic()
        stopper.start()
        stopper.join(timeout=5)

        assert not stopper.is_alive()
        assert time.monotonic() - started < 5

    def test_failed_watch_start_keeps_other_directories(
        self, registry, tmp_path, fast_settings, monkeypatch, wait_until, caplog
    ):
        """한 디렉토리 감시 시작 실패는 경고만 남기고 다른 파일 변경은 계속 반영"""
        good_dir = tmp_path / "a"
        bad_dir = tmp_path / "b"
        good_dir.mkdir()
        bad_dir.mkdir()
        good = good_dir / "a.yaml"
        good.write_text(yaml_with(seven=7), encoding="utf-8")
        (bad_dir / "b.yaml").write_text("other: 1\n", encoding="utf-8")
        monkeypatch.setattr(watcher_module, "Observer", _observer_failing_for(bad_dir))
        seven = registry.get_or_create("seven", ConfigKind.INT, "t.py:1")

        with open_session(
            [good, bad_dir / "b.yaml"], registry=registry, settings=fast_settings
        ) as session:
            assert session.watcher.running
            assert session.watcher.watched_dirs == [os.path.realpath(good_dir)]
            assert any("감시 등록 실패" in r.getMessage() for r in caplog.records)

            good.write_text(yaml_with(seven=8), encoding="utf-8")

            assert wait_until(lambda: seven.value == 8)
