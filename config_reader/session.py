"""
설정 세션

설정 파일 목록을 지정해 생성하면 초기 로드를 수행하고 감시 스레드를
시작합니다. 닫으면 감시 스레드가 완전히 종료될 때까지 대기하며, 이후에는
어떤 리로드도 실행되지 않습니다.

사용법:
    ```python
    speed = config_double("robot.speed", bounds=Bounds(0, 10))

    with open_session(["config/robot.lua"]) as session:
        while running:
            drive(speed.value)  # 파일 수정 시 자동 반영
    ```
"""

import asyncio
import logging
import os
import weakref
from typing import Sequence

from .registry import ConfigRegistry
from .reload import ReloadCallback, ReloadEngine, ReloadResult
from .script_source import SourceFactory
from .settings import WatcherSettings
from .watcher import ConfigWatcher, WatcherState

logger = logging.getLogger(__name__)


class ConfigSession:
    """설정 파일 세션 (감시 스레드 수명 관리)"""

    def __init__(
        self,
        files: Sequence[str | os.PathLike],
        registry: ConfigRegistry | None = None,
        settings: WatcherSettings | None = None,
        source_factory: SourceFactory | None = None,
    ):
        """
        Args:
            files: 평가 순서대로 정렬된 설정 파일 경로
            registry: 슬롯 레지스트리 (기본값: 프로세스 전역 레지스트리)
            settings: 감시자 설정 (기본값: 환경변수)
            source_factory: ScriptSource 생성 함수 (기본값: 확장자 기반)
        """
        if not files:
            raise ValueError("설정 파일이 하나 이상 필요합니다")

        if registry is None:
            registry = ConfigRegistry.default()

        self.files = [os.fspath(f) for f in files]
        self.registry = registry
        self.settings = settings or WatcherSettings.from_env()
        self.engine = ReloadEngine(self.registry, self.files, source_factory)
        self.watcher = ConfigWatcher(self.engine, self.files, self.settings)

        logger.info(f"[ConfigSession] 세션 시작: {self.files}")
        self.watcher.start()

        # close() 누락 시에도 GC/인터프리터 종료 때 감시 스레드 정리
        self._finalizer = weakref.finalize(self, self.watcher.stop)

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    @property
    def state(self) -> WatcherState:
        return self.watcher.state

    def close(self) -> None:
        """감시 중지 (중복 호출 가능)"""
        if self._finalizer.detach() is None:
            return
        self.watcher.stop()
        logger.info(f"[ConfigSession] 세션 종료: {self.files}")

    async def aclose(self) -> None:
        """이벤트 루프를 막지 않고 세션 종료"""
        await asyncio.to_thread(self.close)

    def reload_now(self) -> ReloadResult:
        """즉시 리로드 패스 1회 실행"""
        if self.closed:
            raise RuntimeError("닫힌 세션입니다")
        return self.engine.reload()

    def on_reload(self, callback: ReloadCallback) -> None:
        """리로드 콜백 등록"""
        self.engine.on_reload(callback)

    def remove_callback(self, callback: ReloadCallback) -> None:
        """리로드 콜백 제거"""
        self.engine.remove_callback(callback)

    def __enter__(self) -> "ConfigSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    async def __aenter__(self) -> "ConfigSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"ConfigSession(files={self.files!r}, state={self.state.value})"


def open_session(
    files: Sequence[str | os.PathLike], **kwargs
) -> ConfigSession:
    """설정 세션 생성 (초기 로드 + 감시 시작)"""
    return ConfigSession(files, **kwargs)
