"""
파일 시스템 감시 기반 핫 리로드

watchdog으로 설정 파일의 상위 디렉토리를 감시하고, 변경 이벤트를
디바운스한 뒤 ReloadEngine을 실행합니다.

상태 전이:
    IDLE -> PENDING_INITIAL_LOAD -> ARMED <-> DEBOUNCING
    (어느 상태든) -> STOPPING -> STOPPED

- ARMED: poll_interval 동안 이벤트 대기
- DEBOUNCING: 이벤트가 오면 시각 갱신, quiet_interval 동안 조용하면 리로드
- 레지스트리 dirty(새 키 등록) 감지 시 디바운스 없이 즉시 리로드

에디터는 저장 한 번에 truncate/write/rename 등 여러 이벤트를 만들기 때문에
조용한 구간이 지난 뒤 한 번만 평가합니다.
"""

import logging
import os
import queue
import threading
import time
from enum import Enum
from typing import Sequence

from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .registry import ConfigRegistry
from .reload import ReloadEngine
from .settings import WatcherSettings

logger = logging.getLogger(__name__)

# 리로드 자체가 만드는 opened / closed_no_write 이벤트는 제외
RELOAD_EVENT_TYPES = frozenset(
    {EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED, EVENT_TYPE_CLOSED}
)


class WatcherState(str, Enum):
    """ConfigWatcher 상태"""

    IDLE = "idle"
    PENDING_INITIAL_LOAD = "pending_initial_load"
    ARMED = "armed"
    DEBOUNCING = "debouncing"
    STOPPING = "stopping"
    STOPPED = "stopped"


class ReloadDebouncer:
    """디바운스 상태 머신 (ARMED <-> DEBOUNCING)

    시계를 인자로 받으므로 스레드 없이 단독으로 검증할 수 있습니다.
    """

    def __init__(self, quiet_interval: float):
        self.quiet_interval = quiet_interval
        self.state = WatcherState.ARMED
        self.last_change: float | None = None

    def on_wake(self, changed: bool, now: float) -> bool:
        """대기 종료(이벤트 또는 타임아웃) 처리

        Args:
            changed: 감시 파일 변경 이벤트 수신 여부
            now: 현재 시각 (monotonic 초)

        Returns:
            지금 리로드해야 하면 True
        """
        if changed:
            self.last_change = now
            self.state = WatcherState.DEBOUNCING
            return False

        if (
            self.state is WatcherState.DEBOUNCING
            and now - self.last_change > self.quiet_interval
        ):
            self.reset()
            return True

        return False

    def reset(self) -> None:
        self.state = WatcherState.ARMED
        self.last_change = None


class _ConfigFileHandler(FileSystemEventHandler):
    """감시 디렉토리 이벤트 중 설정 파일 이벤트만 큐에 전달"""

    def __init__(self, watched_files: frozenset[str], events: queue.Queue):
        self.watched_files = watched_files
        self.events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in RELOAD_EVENT_TYPES:
            return

        paths = [event.src_path, getattr(event, "dest_path", "")]
        for path in paths:
            if not path:
                continue
            path = os.path.realpath(os.fsdecode(path))
            if path in self.watched_files:
                logger.debug(
                    f"[ConfigWatcher] 파일 변경 감지: {path} ({event.event_type})"
                )
                self.events.put(path)
                return


class ConfigWatcher:
    """설정 파일 감시 및 디바운스 리로드 스레드

    사용법:
        ```python
        watcher = ConfigWatcher(engine, ["config/robot.lua"])
        watcher.start()  # 초기 로드 후 감시 시작

        # 종료 시 (스레드 종료까지 대기)
        watcher.stop()
        ```
    """

    def __init__(
        self,
        engine: ReloadEngine,
        files: Sequence[str | os.PathLike] | None = None,
        settings: WatcherSettings | None = None,
    ):
        """
        Args:
            engine: 리로드를 실행할 ReloadEngine
            files: 감시할 설정 파일 목록 (기본값: engine.files)
            settings: 대기 주기/디바운스 설정
        """
        self.engine = engine
        self.files = [str(f) for f in (files if files is not None else engine.files)]
        self.settings = settings or WatcherSettings()

        self._events: queue.Queue = queue.Queue()
        self._stop_event = threading.Event()
        self._debouncer = ReloadDebouncer(self.settings.quiet_interval)
        self._lifecycle = WatcherState.IDLE
        self._observer: Observer | None = None
        self._thread: threading.Thread | None = None
        self.watched_dirs: list[str] = []

    @property
    def registry(self) -> ConfigRegistry:
        return self.engine.registry

    @property
    def state(self) -> WatcherState:
        if self._lifecycle is WatcherState.ARMED:
            return self._debouncer.state
        return self._lifecycle

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """초기 로드 후 감시 시작"""
        if self._lifecycle is not WatcherState.IDLE:
            raise RuntimeError(f"이미 시작된 감시자입니다: {self._lifecycle.value}")

        self._lifecycle = WatcherState.PENDING_INITIAL_LOAD
        self._reload()
        self.registry.mark_initialized()

        if self.settings.watch_enabled:
            self._install_watches()

        self._lifecycle = WatcherState.ARMED
        self._thread = threading.Thread(
            target=self._run, name="config-watcher", daemon=True
        )
        self._thread.start()
        logger.info(f"[ConfigWatcher] 파일 감시 시작: {self.watched_dirs}")

    def _install_watches(self) -> None:
        watched_files = frozenset(os.path.realpath(f) for f in self.files)
        handler = _ConfigFileHandler(watched_files, self._events)
        self._observer = Observer()

        # 실행 중인 옵저버에 등록해야 디렉토리별 감시 시작 실패가 schedule()에서 발생
        self._observer.start()

        # 파일이 아니라 상위 디렉토리를 감시 (rename 저장 방식 대응)
        for file in sorted(watched_files):
            dir_path = os.path.dirname(file)
            if dir_path in self.watched_dirs:
                continue
            if not os.path.isdir(dir_path):
                logger.warning(f"[ConfigWatcher] 감시 디렉토리 없음: {dir_path} ({file})")
                continue
            try:
                self._observer.schedule(handler, dir_path, recursive=False)
            except OSError as e:
                logger.warning(f"[ConfigWatcher] 감시 등록 실패: {dir_path} - {e}")
                continue
            self.watched_dirs.append(dir_path)

    def stop(self) -> None:
        """감시 중지 (스레드 종료까지 대기)"""
        if self._lifecycle in (WatcherState.IDLE, WatcherState.STOPPED):
            self._lifecycle = WatcherState.STOPPED
            return

        self._lifecycle = WatcherState.STOPPING
        self._stop_event.set()
        self._events.put(None)

        # 콜백 등에서 감시 스레드 자신이 호출한 경우 join하지 않음
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
            self._lifecycle = WatcherState.STOPPED
            logger.info("[ConfigWatcher] 파일 감시 중지")

    def _run(self) -> None:
        try:
            while not self._stop_event.is_set():
                changed = self._wait_for_change()
                if self._stop_event.is_set():
                    break

                # 감시 시작 이후 새 키 등록 -> 즉시 리로드
                if self.registry.dirty:
                    logger.debug("[ConfigWatcher] 새 키 등록 감지 - 즉시 리로드")
                    self._reload()
                    self._debouncer.reset()
                    continue

                if self._debouncer.on_wake(changed, time.monotonic()):
                    logger.info("[ConfigWatcher] 설정 리로드 실행")
                    self._reload()
        finally:
            self._close_observer()
            self._lifecycle = WatcherState.STOPPED

    def _wait_for_change(self) -> bool:
        """poll_interval 동안 이벤트 대기, 쌓인 이벤트는 한꺼번에 소비"""
        try:
            path = self._events.get(timeout=self.settings.poll_interval)
        except queue.Empty:
            return False

        changed = path is not None
        while True:
            try:
                path = self._events.get_nowait()
            except queue.Empty:
                return changed
            changed = changed or path is not None

    def _reload(self) -> None:
        try:
            self.engine.reload()
        except Exception as e:
            logger.error(f"[ConfigWatcher] 리로드 실패: {e}", exc_info=True)

    def _close_observer(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def notify_change(self, path: str | os.PathLike | None = None) -> None:
        """외부에서 변경 이벤트 주입 (파일 감시를 쓸 수 없는 환경용)"""
        self._events.put(os.fspath(path) if path is not None else "")
