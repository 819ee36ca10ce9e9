"""
설정 스크립트 소스

설정 파일들을 하나의 네임스페이스에서 순서대로 평가하고, 점(.) 경로로
타입이 지정된 값을 조회합니다.

지원 형식:
- Lua (.lua): lupa 바인딩으로 평가. 뒤 파일이 앞 파일의 전역을 참조/확장 가능
- YAML (.yaml, .yml): 순서대로 깊은 병합, ${VAR} / $VAR 환경변수 치환

조회 규칙:
- 최상위 키가 없으면 "아직 정의되지 않음"으로 보고 에러를 남기지 않음
- 중간/하위 키가 없으면 에러 로그
- 값의 타입이 선언 타입과 다르면 에러 로그 후 기본값 반환
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

import yaml
from lupa import LuaError, LuaRuntime, lua_type

from .errors import ScriptLoadError, ValueKindError
from .types import ConfigKind

logger = logging.getLogger(__name__)

# 최상위 키 누락은 에러로 보지 않음 (조건부로 키를 정의하는 설정 파일 지원)
SUPPRESS_TOP_LEVEL_MISSING = True

LUA_SUFFIXES = (".lua",)
YAML_SUFFIXES = (".yaml", ".yml")


class ScriptSource(ABC):
    """설정 스크립트 소스 기본 클래스

    생성 시 모든 파일을 평가합니다. 평가에 실패하면 소스는 사용 불가
    상태가 되고, 이후 모든 조회는 "없음"과 타입 기본값을 반환합니다.
    실패는 생성 시 한 번만 로그로 남깁니다.
    """

    def __init__(self, files: Sequence[str | os.PathLike]):
        self.files = [str(f) for f in files]
        self.load_error: ScriptLoadError | None = None

        for file in self.files:
            try:
                self._load_file(file)
            except ScriptLoadError as e:
                self._fail(e)
                break

    @property
    def loaded(self) -> bool:
        return self.load_error is None

    def _fail(self, error: ScriptLoadError) -> None:
        logger.error(f"[ScriptSource] 로드 실패: {error.file}")
        logger.error(f"[ScriptSource] 에러 메시지: {error.reason}")
        self.load_error = error
        self._discard()

    @abstractmethod
    def _load_file(self, file: str) -> None:
        """파일 하나를 공유 네임스페이스에서 평가

        Raises:
            ScriptLoadError: 평가 실패 시
        """

    def _discard(self) -> None:
        """로드 실패 시 평가 컨텍스트 폐기"""

    @abstractmethod
    def _top_level(self, name: str) -> Any:
        """최상위 이름 조회 (없으면 None)"""

    @abstractmethod
    def _child(self, node: Any, name: str) -> Any:
        """하위 이름 조회 (node가 테이블이 아니거나 없으면 None)"""

    def _to_python(self, node: Any) -> Any:
        """스크립트 값을 파이썬 기본 타입으로 변환"""
        return node

    def fetch(
        self, kind: ConfigKind, key: str, sites: Iterable[str] = ()
    ) -> tuple[bool, Any]:
        """점 경로로 값 조회

        Args:
            kind: 요청 타입
            key: 점 경로 (예: "wrapper.another.value")
            sites: 선언 위치 목록 (에러 로그용)

        Returns:
            (found, value). 실패 시 (False, 타입 기본값)
        """
        if not self.loaded:
            logger.debug(f"[ScriptSource] 스크립트 미로드 상태 - [{key}] 건너뜀")
            return False, kind.default

        node = None
        for level, name in enumerate(key.split(".")):
            node = self._top_level(name) if level == 0 else self._child(node, name)
            if node is None:
                if level > 0 or not SUPPRESS_TOP_LEVEL_MISSING:
                    self._error(key, f"{name} is not defined", sites)
                else:
                    logger.debug(f"[ScriptSource] [{key}] 아직 정의되지 않음")
                return False, kind.default

        try:
            return True, kind.coerce(self._to_python(node))
        except ValueKindError as e:
            self._error(key, str(e), sites)
            return False, kind.default

    def _error(self, key: str, reason: str, sites: Iterable[str]) -> None:
        sites = list(sites)
        if not sites:
            logger.error(f"[ScriptSource] [{key}] 조회 실패: {reason}")
            return
        for site in sites:
            logger.error(f"[ScriptSource] {site}: [{key}] 조회 실패: {reason}")


class LuaScriptSource(ScriptSource):
    """Lua 설정 스크립트 소스

    모든 파일을 하나의 LuaRuntime 전역 공간에서 dofile로 실행합니다.
    """

    def __init__(self, files: Sequence[str | os.PathLike]):
        self._lua: LuaRuntime | None = LuaRuntime()
        super().__init__(files)

    def _load_file(self, file: str) -> None:
        try:
            self._lua.globals().dofile(file)
        except LuaError as e:
            raise ScriptLoadError(file, str(e)) from e

    def _discard(self) -> None:
        self._lua = None

    def _top_level(self, name: str) -> Any:
        return self._lua.globals()[name]

    def _child(self, node: Any, name: str) -> Any:
        if lua_type(node) != "table":
            return None
        return node[name]

    def _to_python(self, node: Any) -> Any:
        if lua_type(node) != "table":
            return node
        items = list(node.items())
        length = len(node)
        if len(items) == length:
            # 1..n 연속 정수 키 (빈 테이블 포함) -> 리스트
            return [self._to_python(node[i]) for i in range(1, length + 1)]
        return {k: self._to_python(v) for k, v in items}


class YamlScriptSource(ScriptSource):
    """YAML 설정 소스

    파일을 순서대로 읽어 하나의 딕셔너리로 깊은 병합합니다.
    뒤 파일의 테이블은 앞 파일의 같은 테이블을 확장/덮어씁니다.
    """

    def __init__(self, files: Sequence[str | os.PathLike]):
        self._namespace: dict[str, Any] | None = {}
        super().__init__(files)

    def _load_file(self, file: str) -> None:
        try:
            with open(file, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            raise ScriptLoadError(file, str(e)) from e

        if not isinstance(data, dict):
            raise ScriptLoadError(
                file, f"최상위 값이 매핑이 아닙니다: {type(data).__name__}"
            )

        _deep_merge(self._namespace, _substitute_env_vars(data))

    def _discard(self) -> None:
        self._namespace = None

    def _top_level(self, name: str) -> Any:
        return self._namespace.get(name)

    def _child(self, node: Any, name: str) -> Any:
        if not isinstance(node, dict):
            return None
        return node.get(name)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


# ${NAME} 또는 $NAME (대문자/밑줄), 정의되지 않은 변수는 원문 유지
_ENV_VAR = re.compile(r"\$(?:\{([^}]+)\}|([A-Z_][A-Z0-9_]*))")


def _expand_env(text: str) -> str:
    return _ENV_VAR.sub(
        lambda m: os.environ.get(m.group(1) or m.group(2), m.group(0)), text
    )


def _substitute_env_vars(node: Any) -> Any:
    """YAML 문자열 값의 환경변수 참조를 재귀적으로 치환"""
    if isinstance(node, dict):
        return {key: _substitute_env_vars(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_substitute_env_vars(item) for item in node]
    if isinstance(node, str):
        return _expand_env(node)
    return node


SourceFactory = Callable[[Sequence[str]], ScriptSource]


def load_source(files: Sequence[str | os.PathLike]) -> ScriptSource:
    """파일 확장자로 소스 종류를 골라 평가

    모든 파일이 YAML이면 YamlScriptSource, 그 외에는 LuaScriptSource.

    Args:
        files: 평가 순서대로 정렬된 설정 파일 경로

    Returns:
        평가된 ScriptSource (실패해도 사용 불가 상태로 반환)
    """
    suffixes = {Path(f).suffix.lower() for f in files}
    if suffixes and suffixes <= set(YAML_SUFFIXES):
        return YamlScriptSource(files)
    return LuaScriptSource(files)
