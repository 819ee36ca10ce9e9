"""
Pytest 설정 및 공통 Fixture
"""

import time
from pathlib import Path
from typing import Callable

import pytest

from config_reader.registry import ConfigRegistry
from config_reader.settings import WatcherSettings


@pytest.fixture(autouse=True)
def reset_default_registry():
    """프로세스 전역 레지스트리 싱글톤 리셋"""
    ConfigRegistry._instance = None
    yield
    ConfigRegistry._instance = None


@pytest.fixture
def registry() -> ConfigRegistry:
    """테스트별 독립 레지스트리"""
    return ConfigRegistry()


@pytest.fixture
def fast_settings() -> WatcherSettings:
    """짧은 대기 주기 설정 (파일 감시 사용)"""
    return WatcherSettings(poll_interval=0.02, quiet_periods=2)


@pytest.fixture
def manual_settings() -> WatcherSettings:
    """파일 감시 없이 notify_change로만 이벤트를 주입하는 설정"""
    return WatcherSettings(poll_interval=0.02, quiet_periods=2, watch_enabled=False)


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[str, str], Path]:
    """임시 디렉토리에 설정 파일 작성"""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


def _wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """조건이 참이 될 때까지 폴링 (시간 초과 시 False)"""
    return _wait_until
