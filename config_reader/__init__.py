"""
config_reader: 타입 지정 핫 리로드 설정 레지스트리

사용 지점에서 설정 키를 선언하고, 세션을 열면 설정 파일 변경이 선언된
슬롯에 자동으로 반영됩니다.
"""

from .declare import (
    config_bool,
    config_bool_list,
    config_double,
    config_double_list,
    config_float,
    config_float_list,
    config_int,
    config_int_list,
    config_string,
    config_string_list,
    config_uint,
    config_uint_list,
    config_vector2f,
    config_vector2f_list,
    config_vector3f,
    config_vector3f_list,
    declare,
    wait_for_init,
)
from .errors import (
    BoundsError,
    ConfigReaderError,
    ErrorCategory,
    ErrorClassifier,
    KindMismatchError,
    RegistryIntegrityError,
    ScriptLoadError,
    ValueKindError,
)
from .registry import ConfigRegistry, ConfigSlot
from .reload import ReloadEngine, ReloadResult
from .script_source import (
    LuaScriptSource,
    ScriptSource,
    YamlScriptSource,
    load_source,
)
from .session import ConfigSession, open_session
from .settings import WatcherSettings
from .types import Bounds, ConfigKind, Vector2, Vector3
from .watcher import ConfigWatcher, ReloadDebouncer, WatcherState

__all__ = [
    # Declaration
    "declare",
    "wait_for_init",
    "config_int",
    "config_uint",
    "config_float",
    "config_double",
    "config_string",
    "config_bool",
    "config_int_list",
    "config_uint_list",
    "config_float_list",
    "config_double_list",
    "config_string_list",
    "config_bool_list",
    "config_vector2f",
    "config_vector3f",
    "config_vector2f_list",
    "config_vector3f_list",
    # Errors
    "BoundsError",
    "ConfigReaderError",
    "ErrorCategory",
    "ErrorClassifier",
    "KindMismatchError",
    "RegistryIntegrityError",
    "ScriptLoadError",
    "ValueKindError",
    # Registry
    "ConfigRegistry",
    "ConfigSlot",
    # Reload
    "ReloadEngine",
    "ReloadResult",
    # Script Source
    "LuaScriptSource",
    "ScriptSource",
    "YamlScriptSource",
    "load_source",
    # Session
    "ConfigSession",
    "open_session",
    "WatcherSettings",
    # Types
    "Bounds",
    "ConfigKind",
    "Vector2",
    "Vector3",
    # Watcher
    "ConfigWatcher",
    "ReloadDebouncer",
    "WatcherState",
]
