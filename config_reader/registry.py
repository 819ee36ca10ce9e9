"""
설정 슬롯 레지스트리

키 → ConfigSlot 프로세스 전역 테이블.

설계 원칙:
- 키당 슬롯은 정확히 하나, 삭제/교체되지 않음 (발급된 슬롯 참조는 영구 유효)
- 슬롯 타입은 최초 선언 시 고정, 다른 타입으로 재선언하면 치명적 에러
- 값 갱신은 불변 값 객체의 참조 교체 한 번으로 게시 (리더는 락 없이 읽음)
- 새 키 등록 시 dirty 플래그 설정, 리로드 패스가 반영하면 해제
"""

import logging
import threading
from typing import Any, Generic, Iterator, TypeVar

from .errors import BoundsError, KindMismatchError
from .types import Bounds, ConfigKind

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConfigSlot(Generic[T]):
    """타입이 고정된 설정 값 저장 셀

    호출자는 슬롯 객체를 보관하고 `value`로 현재 값을 읽습니다.
    리로드는 슬롯을 교체하지 않고 값만 갱신하므로, 한 번 받은 슬롯으로
    항상 최신 값을 볼 수 있습니다.
    """

    __slots__ = ("key", "kind", "bounds", "_value", "_sites")

    def __init__(self, key: str, kind: ConfigKind, bounds: Bounds | None = None):
        self.key = key
        self.kind = kind
        self.bounds = bounds
        self._value: T = kind.default
        self._sites: list[str] = []

    @property
    def value(self) -> T:
        """현재 값 (블로킹 없음)"""
        return self._value

    @property
    def declaration_sites(self) -> list[str]:
        """이 키를 선언한 위치 목록 (진단용)"""
        return list(self._sites)

    def add_site(self, site: str) -> None:
        if site not in self._sites:
            self._sites.append(site)

    def update(self, value: T) -> None:
        """새 값 게시

        Raises:
            BoundsError: 선언된 범위를 벗어난 값 (기존 값 유지)
        """
        if self.bounds is not None and not self.bounds.contains(value):
            raise BoundsError(self.key, value, self.bounds)
        self._value = value

    def __repr__(self) -> str:
        return f"ConfigSlot(key={self.key!r}, kind={self.kind.value}, value={self._value!r})"


class ConfigRegistry:
    """설정 슬롯 레지스트리

    `ConfigRegistry.default()`는 지연 생성되는 프로세스 전역 인스턴스를
    반환합니다. 테스트는 독립 인스턴스를 직접 생성해 사용합니다.

    사용법:
        ```python
        registry = ConfigRegistry.default()
        slot = registry.get_or_create("robot.speed", ConfigKind.DOUBLE, "main.py:10")
        print(slot.value)
        ```
    """

    _instance: "ConfigRegistry | None" = None
    _instance_lock = threading.Lock()

    def __init__(self):
        self._slots: dict[str, ConfigSlot] = {}
        self._lock = threading.Lock()
        self._clean = threading.Condition(self._lock)

        # 새 키 등록마다 증가, 리로드 패스가 반영한 세대까지 기록
        self._generation = 0
        self._clean_generation = 0
        self._initialized = False

    @classmethod
    def default(cls) -> "ConfigRegistry":
        """프로세스 전역 레지스트리 (최초 접근 시 생성)"""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_or_create(
        self,
        key: str,
        kind: ConfigKind,
        site: str,
        bounds: Bounds | None = None,
    ) -> ConfigSlot:
        """키에 해당하는 슬롯 조회 또는 생성

        Args:
            key: 점 경로 키
            kind: 요청 타입
            site: 선언 위치 (예: "main.py:12")
            bounds: 숫자 타입 범위 (최초 선언 시에만 기록)

        Returns:
            ConfigSlot (같은 키에 대해 항상 같은 객체)

        Raises:
            KindMismatchError: 기존 슬롯과 타입이 다를 때 (치명적)
        """
        with self._lock:
            slot = self._slots.get(key)
            if slot is not None:
                if slot.kind is not kind:
                    error = KindMismatchError(
                        key, slot.kind, kind, slot.declaration_sites + [site]
                    )
                    logger.critical(f"[ConfigRegistry] {error}")
                    for existing_site in error.sites:
                        logger.critical(f"[ConfigRegistry]   선언 위치: {existing_site}")
                    raise error
                if bounds is not None and bounds != slot.bounds:
                    logger.warning(
                        f"[ConfigRegistry] [{key}] 범위 재지정 무시: "
                        f"{bounds} (기존 {slot.bounds}), {site}"
                    )
                slot.add_site(site)
                return slot

            slot = ConfigSlot(key, kind, bounds)
            slot.add_site(site)
            self._slots[key] = slot
            self._generation += 1

        logger.debug(f"[ConfigRegistry] 새 키 등록: {key} ({kind.value}), {site}")
        return slot

    def get(self, key: str) -> ConfigSlot | None:
        """등록된 슬롯 조회 (없으면 None)"""
        return self._slots.get(key)

    def snapshot(self) -> tuple[int, list[ConfigSlot]]:
        """리로드 패스용 스냅샷

        Returns:
            (세대 번호, 슬롯 목록)
        """
        with self._lock:
            return self._generation, list(self._slots.values())

    def mark_clean(self, generation: int) -> bool:
        """리로드 패스 완료 처리

        패스 도중 새 키가 등록되지 않았을 때만 dirty 플래그를 해제합니다.

        Returns:
            dirty 플래그 해제 여부
        """
        with self._clean:
            if generation != self._generation:
                return False
            self._clean_generation = generation
            self._clean.notify_all()
            return True

    @property
    def dirty(self) -> bool:
        """마지막 리로드 패스 이후 새 키가 등록되었는지 여부"""
        return self._generation != self._clean_generation

    def mark_initialized(self) -> None:
        """세션의 초기 로드 완료 표시"""
        with self._clean:
            self._initialized = True
            self._clean.notify_all()

    @property
    def initialized(self) -> bool:
        return self._initialized

    def wait_until_clean(self, timeout: float | None = None) -> bool:
        """새로 등록된 키가 리로드 패스에 반영될 때까지 대기

        세션이 아직 초기화되지 않았으면 즉시 반환합니다.

        Args:
            timeout: 최대 대기 시간 (초), None이면 무제한

        Returns:
            레지스트리가 clean 상태이면 True
        """
        with self._clean:
            self._clean.wait_for(
                lambda: not self.dirty or not self._initialized, timeout
            )
            return not self.dirty

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._slots)

    def __contains__(self, key: object) -> bool:
        return key in self._slots

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[ConfigSlot]:
        return iter(self.snapshot()[1])

    def values(self) -> dict[str, Any]:
        """키별 현재 값 (디버그/진단용)"""
        return {slot.key: slot.value for slot in self}
