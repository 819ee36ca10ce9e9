"""
리로드 엔진

설정 스크립트를 다시 평가하고 레지스트리의 모든 슬롯 값을 제자리에서
갱신합니다. 세션 생성 시 한 번, 이후에는 ConfigWatcher가 호출합니다.

슬롯별 실패(타입 불일치, 범위 위반 등)는 그 자리에서 로그로 남기고
해당 슬롯은 마지막 정상 값을 유지합니다. 패스 밖으로 예외를 전파하지
않습니다.
"""

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Sequence

from .errors import (
    BoundsError,
    ErrorCategory,
    ErrorClassifier,
    RegistryIntegrityError,
)
from .registry import ConfigRegistry
from .script_source import SourceFactory, load_source
from .types import ConfigKind

logger = logging.getLogger(__name__)


@dataclass
class ReloadResult:
    """리로드 패스 결과"""

    pass_number: int
    updated: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    load_error: str | None = None
    aborted: bool = False
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        """로드 실패/중단 없이 끝났는지 여부"""
        return self.load_error is None and not self.aborted


ReloadCallback = Callable[[ReloadResult], None]


class ReloadEngine:
    """설정 전체 리로드 실행기

    사용법:
        ```python
        engine = ReloadEngine(ConfigRegistry.default(), ["config.lua"])
        result = engine.reload()
        ```
    """

    def __init__(
        self,
        registry: ConfigRegistry,
        files: Sequence[str | os.PathLike],
        source_factory: SourceFactory | None = None,
    ):
        """
        Args:
            registry: 갱신할 슬롯 레지스트리
            files: 평가 순서대로 정렬된 설정 파일 경로
            source_factory: 파일 목록으로 ScriptSource를 만드는 함수
                기본값: load_source (확장자 기반)
        """
        self.registry = registry
        self.files = [str(f) for f in files]
        self.source_factory = source_factory or load_source
        self._lock = threading.Lock()
        self._callbacks: list[ReloadCallback] = []
        self._pass_count = 0

    @property
    def pass_count(self) -> int:
        """지금까지 실행된 리로드 패스 수"""
        return self._pass_count

    def reload(self) -> ReloadResult:
        """리로드 패스 1회 실행

        Returns:
            ReloadResult: 슬롯별 갱신 결과
        """
        with self._lock:
            self._pass_count += 1
            result = ReloadResult(pass_number=self._pass_count)
            started = time.monotonic()

            generation, slots = self.registry.snapshot()
            logger.debug(
                f"[ReloadEngine] 리로드 #{result.pass_number} 시작: "
                f"{len(slots)}개 키, 파일 {self.files}"
            )

            try:
                source = self.source_factory(self.files)
            except Exception as e:
                logger.error(
                    f"[ReloadEngine] 소스 생성 실패: "
                    f"{ErrorClassifier.format_message(e)}"
                )
                result.load_error = str(e)
                result.aborted = True
                return self._finish(result, started)

            if source.load_error is not None:
                result.load_error = str(source.load_error)

            for slot in slots:
                if slot.kind is ConfigKind.NULL:
                    error = RegistryIntegrityError(f"키 [{slot.key}]의 타입이 없습니다")
                    logger.critical(
                        f"[ReloadEngine] {ErrorClassifier.format_message(error)}"
                    )
                    result.aborted = True
                    return self._finish(result, started)

                try:
                    found, value = source.fetch(
                        slot.kind, slot.key, slot.declaration_sites
                    )
                    if not found:
                        result.missing.append(slot.key)
                        continue
                    slot.update(value)
                    result.updated.append(slot.key)
                except BoundsError as e:
                    for site in slot.declaration_sites:
                        logger.error(f"[ReloadEngine] {site}: {e}")
                    result.rejected.append(slot.key)
                except Exception as e:
                    level = (
                        logging.CRITICAL
                        if ErrorClassifier.classify(e) is ErrorCategory.FATAL
                        else logging.ERROR
                    )
                    logger.log(
                        level,
                        f"[ReloadEngine] [{slot.key}] 갱신 실패: "
                        f"{ErrorClassifier.format_message(e)}",
                    )
                    result.failed.append(slot.key)

            if not self.registry.mark_clean(generation):
                logger.debug("[ReloadEngine] 패스 도중 새 키 등록 - dirty 유지")

            return self._finish(result, started)

    def _finish(self, result: ReloadResult, started: float) -> ReloadResult:
        result.duration_ms = (time.monotonic() - started) * 1000
        logger.info(
            f"[ReloadEngine] 리로드 #{result.pass_number} 완료: "
            f"갱신 {len(result.updated)}, 없음 {len(result.missing)}, "
            f"거부 {len(result.rejected)}, 실패 {len(result.failed)} "
            f"({result.duration_ms:.1f}ms)"
        )

        # 콜백 호출
        for callback in list(self._callbacks):
            try:
                callback(result)
            except Exception as e:
                logger.error(f"[ReloadEngine] 콜백 실행 실패: {e}")

        return result

    def on_reload(self, callback: ReloadCallback) -> None:
        """리로드 콜백 등록"""
        self._callbacks.append(callback)

    def remove_callback(self, callback: ReloadCallback) -> None:
        """리로드 콜백 제거"""
        if callback in self._callbacks:
            self._callbacks.remove(callback)
