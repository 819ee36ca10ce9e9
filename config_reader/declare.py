"""
설정 키 선언 API

사용 지점에서 한 번 호출해 타입이 지정된 슬롯을 받습니다. 같은 키/타입으로
여러 번 선언해도 같은 슬롯을 반환하며, 다른 타입으로 선언하면
KindMismatchError(치명적)가 발생합니다.

사용법:
    ```python
    seven = config_int("seven")
    names = config_string_list("robot.names")
    speed = config_double("robot.speed", bounds=Bounds(0.0, 10.0))

    print(seven.value)
    ```
"""

import logging
import os
import sys

from .registry import ConfigRegistry, ConfigSlot
from .types import Bounds, ConfigKind, Vector2, Vector3

logger = logging.getLogger(__name__)


def _declaration_site(depth: int, name: str | None) -> str:
    frame = sys._getframe(depth + 1)
    site = f"{os.path.basename(frame.f_code.co_filename)}:{frame.f_lineno}"
    if name:
        site += f" ({name})"
    return site


def declare(
    kind: ConfigKind,
    key: str,
    *,
    bounds: Bounds | tuple[float | None, float | None] | None = None,
    name: str | None = None,
    registry: ConfigRegistry | None = None,
    stacklevel: int = 1,
) -> ConfigSlot:
    """설정 키 선언

    Args:
        kind: 값 타입
        key: 점 경로 키 (예: "wrapper.another.value")
        bounds: 숫자 타입 허용 범위 (양 끝 포함)
        name: 진단용 심볼 이름
        registry: 레지스트리 (기본값: 프로세스 전역 레지스트리)
        stacklevel: 선언 위치로 기록할 호출 스택 깊이

    Returns:
        ConfigSlot: `.value`로 항상 최신 값을 읽을 수 있는 슬롯

    Raises:
        KindMismatchError: 같은 키가 다른 타입으로 이미 선언됨
        ValueError: 잘못된 키/타입/범위 지정
    """
    if kind is ConfigKind.NULL:
        raise ValueError("NULL 타입은 선언할 수 없습니다")
    if not key or any(not part for part in key.split(".")):
        raise ValueError(f"잘못된 설정 키: {key!r}")

    if bounds is not None:
        if not kind.is_numeric:
            raise ValueError(f"범위는 숫자 타입에만 지정할 수 있습니다: {kind.value}")
        bounds = Bounds(*bounds)
        if bounds.inverted:
            logger.error(
                f"[ConfigRegistry] [{key}] 상한 {bounds.upper}이(가) "
                f"하한 {bounds.lower}보다 작습니다"
            )

    if registry is None:
        registry = ConfigRegistry.default()
    site = _declaration_site(stacklevel, name)
    return registry.get_or_create(key, kind, site, bounds)


def wait_for_init(
    registry: ConfigRegistry | None = None, timeout: float | None = None
) -> bool:
    """새로 선언한 키가 리로드에 반영될 때까지 대기

    세션이 아직 열리지 않았으면 즉시 반환합니다.

    Returns:
        레지스트리가 clean 상태이면 True
    """
    if registry is None:
        registry = ConfigRegistry.default()
    return registry.wait_until_clean(timeout)


# ============================================================================
# 타입별 선언 함수
# ============================================================================


def config_int(key: str, **kwargs) -> ConfigSlot[int]:
    return declare(ConfigKind.INT, key, stacklevel=2, **kwargs)


def config_uint(key: str, **kwargs) -> ConfigSlot[int]:
    return declare(ConfigKind.UINT, key, stacklevel=2, **kwargs)


def config_float(key: str, **kwargs) -> ConfigSlot[float]:
    return declare(ConfigKind.FLOAT, key, stacklevel=2, **kwargs)


def config_double(key: str, **kwargs) -> ConfigSlot[float]:
    return declare(ConfigKind.DOUBLE, key, stacklevel=2, **kwargs)


def config_string(key: str, **kwargs) -> ConfigSlot[str]:
    return declare(ConfigKind.STRING, key, stacklevel=2, **kwargs)


def config_bool(key: str, **kwargs) -> ConfigSlot[bool]:
    return declare(ConfigKind.BOOL, key, stacklevel=2, **kwargs)


def config_int_list(key: str, **kwargs) -> ConfigSlot[tuple[int, ...]]:
    return declare(ConfigKind.INT_LIST, key, stacklevel=2, **kwargs)


def config_uint_list(key: str, **kwargs) -> ConfigSlot[tuple[int, ...]]:
    return declare(ConfigKind.UINT_LIST, key, stacklevel=2, **kwargs)


def config_float_list(key: str, **kwargs) -> ConfigSlot[tuple[float, ...]]:
    return declare(ConfigKind.FLOAT_LIST, key, stacklevel=2, **kwargs)


def config_double_list(key: str, **kwargs) -> ConfigSlot[tuple[float, ...]]:
    return declare(ConfigKind.DOUBLE_LIST, key, stacklevel=2, **kwargs)


def config_string_list(key: str, **kwargs) -> ConfigSlot[tuple[str, ...]]:
    return declare(ConfigKind.STRING_LIST, key, stacklevel=2, **kwargs)


def config_bool_list(key: str, **kwargs) -> ConfigSlot[tuple[bool, ...]]:
    return declare(ConfigKind.BOOL_LIST, key, stacklevel=2, **kwargs)


def config_vector2f(key: str, **kwargs) -> ConfigSlot[Vector2]:
    return declare(ConfigKind.VECTOR2F, key, stacklevel=2, **kwargs)


def config_vector3f(key: str, **kwargs) -> ConfigSlot[Vector3]:
    return declare(ConfigKind.VECTOR3F, key, stacklevel=2, **kwargs)


def config_vector2f_list(key: str, **kwargs) -> ConfigSlot[tuple[Vector2, ...]]:
    return declare(ConfigKind.VECTOR2F_LIST, key, stacklevel=2, **kwargs)


def config_vector3f_list(key: str, **kwargs) -> ConfigSlot[tuple[Vector3, ...]]:
    return declare(ConfigKind.VECTOR3F_LIST, key, stacklevel=2, **kwargs)
