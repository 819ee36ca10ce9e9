"""
공용 타입 정의

설정 값 타입(ConfigKind), 벡터 값, 숫자 범위와 타입별 기본값/변환 규칙.

슬롯에 게시되는 값은 모두 불변 객체입니다 (리스트는 tuple, 벡터는
NamedTuple). 리더 스레드가 받은 값은 이후 리로드에 의해 변형되지 않습니다.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, NamedTuple

from .errors import ValueKindError


class Vector2(NamedTuple):
    """2차원 float 벡터"""

    x: float = 0.0
    y: float = 0.0


class Vector3(NamedTuple):
    """3차원 float 벡터"""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class Bounds(NamedTuple):
    """숫자 값 허용 범위 (양 끝 포함, None이면 열린 구간)"""

    lower: float | None = None
    upper: float | None = None

    def contains(self, value: float) -> bool:
        if self.lower is not None and value < self.lower:
            return False
        if self.upper is not None and value > self.upper:
            return False
        return True

    @property
    def inverted(self) -> bool:
        """하한이 상한보다 큰 잘못된 범위인지 여부"""
        return (
            self.lower is not None
            and self.upper is not None
            and self.lower > self.upper
        )

    def __str__(self) -> str:
        lower = "-inf" if self.lower is None else self.lower
        upper = "inf" if self.upper is None else self.upper
        return f"[{lower}, {upper}]"


class ConfigKind(str, Enum):
    """설정 슬롯 타입 (생성 후 변경 불가)"""

    NULL = "null"  # 타입 없음 (내부 센티널, 선언 불가)
    INT = "int"
    UINT = "uint"
    FLOAT = "float"
    DOUBLE = "double"
    STRING = "string"
    BOOL = "bool"
    INT_LIST = "int_list"
    UINT_LIST = "uint_list"
    FLOAT_LIST = "float_list"
    DOUBLE_LIST = "double_list"
    STRING_LIST = "string_list"
    BOOL_LIST = "bool_list"
    VECTOR2F = "vector2f"
    VECTOR3F = "vector3f"
    VECTOR2F_LIST = "vector2f_list"
    VECTOR3F_LIST = "vector3f_list"

    @property
    def default(self) -> Any:
        """타입별 기본값 (첫 리로드 전 슬롯 값)"""
        return _KIND_SPECS[self].default

    @property
    def is_numeric(self) -> bool:
        """범위 지정이 가능한 숫자 스칼라 타입인지 여부"""
        return _KIND_SPECS[self].numeric

    def coerce(self, raw: Any) -> Any:
        """스크립트에서 읽은 원시 값을 이 타입의 값으로 변환

        Raises:
            ValueKindError: 값의 런타임 타입이 맞지 않을 때
        """
        return _KIND_SPECS[self].convert(raw)


# ============================================================================
# 타입별 변환 함수
# ============================================================================


def _is_number(raw: Any) -> bool:
    return isinstance(raw, (int, float)) and not isinstance(raw, bool)


def _to_int(raw: Any) -> int:
    if _is_number(raw):
        if isinstance(raw, int):
            return raw
        if raw.is_integer():
            return int(raw)
    raise ValueKindError("Not an integer")


def _to_uint(raw: Any) -> int:
    value = _to_int(raw)
    if value < 0:
        raise ValueKindError("Not an unsigned integer")
    return value


def _to_float(raw: Any) -> float:
    if not _is_number(raw):
        raise ValueKindError("Not a number")
    return float(raw)


def _to_string(raw: Any) -> str:
    if not isinstance(raw, str):
        raise ValueKindError("Not a string")
    return raw


def _to_bool(raw: Any) -> bool:
    if not isinstance(raw, bool):
        raise ValueKindError("Not a boolean")
    return raw


def _vector_of(size: int, factory: Callable[..., Any]) -> Callable[[Any], Any]:
    name = f"Vector{size}f"

    def convert(raw: Any) -> Any:
        if not isinstance(raw, (list, tuple)):
            raise ValueKindError(f"Not a {name}")
        if len(raw) != size:
            raise ValueKindError(
                f"Wrong number of entries for {name} ({len(raw)})"
            )
        if not all(_is_number(item) for item in raw):
            raise ValueKindError("Element not a number")
        return factory(*(float(item) for item in raw))

    return convert


def _list_of(
    convert_item: Callable[[Any], Any], item_name: str
) -> Callable[[Any], tuple]:
    def convert(raw: Any) -> tuple:
        if not isinstance(raw, (list, tuple)):
            raise ValueKindError(f"Not a list of {item_name}")
        items = []
        for item in raw:
            try:
                items.append(convert_item(item))
            except ValueKindError as e:
                raise ValueKindError(f"Element not a {item_name}: {e}") from e
        return tuple(items)

    return convert


def _reject_null(raw: Any) -> Any:
    raise ValueKindError("Key has no type")


@dataclass(frozen=True)
class _KindSpec:
    default: Any
    convert: Callable[[Any], Any]
    numeric: bool = False


_to_vector2 = _vector_of(2, Vector2)
_to_vector3 = _vector_of(3, Vector3)

_KIND_SPECS: dict[ConfigKind, _KindSpec] = {
    ConfigKind.NULL: _KindSpec(None, _reject_null),
    ConfigKind.INT: _KindSpec(0, _to_int, numeric=True),
    ConfigKind.UINT: _KindSpec(0, _to_uint, numeric=True),
    ConfigKind.FLOAT: _KindSpec(0.0, _to_float, numeric=True),
    ConfigKind.DOUBLE: _KindSpec(0.0, _to_float, numeric=True),
    ConfigKind.STRING: _KindSpec("", _to_string),
    ConfigKind.BOOL: _KindSpec(False, _to_bool),
    ConfigKind.INT_LIST: _KindSpec((), _list_of(_to_int, "int")),
    ConfigKind.UINT_LIST: _KindSpec((), _list_of(_to_uint, "unsigned int")),
    ConfigKind.FLOAT_LIST: _KindSpec((), _list_of(_to_float, "float")),
    ConfigKind.DOUBLE_LIST: _KindSpec((), _list_of(_to_float, "double")),
    ConfigKind.STRING_LIST: _KindSpec((), _list_of(_to_string, "string")),
    ConfigKind.BOOL_LIST: _KindSpec((), _list_of(_to_bool, "bool")),
    ConfigKind.VECTOR2F: _KindSpec(Vector2(), _to_vector2),
    ConfigKind.VECTOR3F: _KindSpec(Vector3(), _to_vector3),
    ConfigKind.VECTOR2F_LIST: _KindSpec((), _list_of(_to_vector2, "Vector2f")),
    ConfigKind.VECTOR3F_LIST: _KindSpec((), _list_of(_to_vector3, "Vector3f")),
}
