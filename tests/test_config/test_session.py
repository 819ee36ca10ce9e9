"""
ConfigSession 수명 관리 테스트
"""

import gc
import os
import time
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from config_reader.declare import config_int, config_int_list, config_string
from config_reader.registry import ConfigRegistry
from config_reader.session import ConfigSession, open_session
from config_reader.settings import WatcherSettings
from config_reader.watcher import WatcherState
from tests.sample_data import yaml_with


class TestConfigSession:
    """세션 테스트"""

    @pytest.fixture
    def config_path(self, write_config):
        return write_config("config.yaml", yaml_with(seven=7))

    def test_open_session_initial_load(self, registry, config_path, manual_settings):
        """세션 생성 시 초기 로드"""
        seven = config_int("seven", registry=registry)
        text = config_string("str", registry=registry)
        items = config_int_list("list", registry=registry)

        with open_session([config_path], registry=registry, settings=manual_settings):
            assert seven.value == 7
            assert text.value == "str"
            assert items.value == (1, 2, 3)

    def test_requires_files(self, registry):
        with pytest.raises(ValueError):
            ConfigSession([], registry=registry)

    def test_uses_default_registry(self, config_path, manual_settings):
        seven = config_int("seven")

        with ConfigSession([config_path], settings=manual_settings) as session:
            assert session.registry is ConfigRegistry.default()
            assert seven.value == 7

    def test_close_stops_watcher(self, registry, config_path, manual_settings):
        session = ConfigSession([config_path], registry=registry, settings=manual_settings)
        assert session.state in (WatcherState.ARMED, WatcherState.DEBOUNCING)

        session.close()

        assert session.closed
        assert session.state is WatcherState.STOPPED
        assert not session.watcher.running

    def test_close_idempotent(self, registry, config_path, manual_settings):
        session = ConfigSession([config_path], registry=registry, settings=manual_settings)

        session.close()
        session.close()

        assert session.closed

    def test_no_reload_after_close(self, registry, config_path, manual_settings):
        """close() 반환 이후 리로드 없음"""
        seven = config_int("seven", registry=registry)
        session = ConfigSession([config_path], registry=registry, settings=manual_settings)
        session.close()
        count = session.engine.pass_count

        config_path.write_text(yaml_with(seven=8), encoding="utf-8")
        session.watcher.notify_change(config_path)
        time.sleep(0.2)

        assert session.engine.pass_count == count
        assert seven.value == 7

    def test_reload_now(self, registry, config_path, manual_settings):
        seven = config_int("seven", registry=registry)

        with ConfigSession(
            [config_path], registry=registry, settings=manual_settings
        ) as session:
            config_path.write_text(yaml_with(seven=9), encoding="utf-8")
            result = session.reload_now()

            assert seven.value == 9
            assert "seven" in result.updated

    def test_reload_now_after_close_rejected(self, registry, config_path, manual_settings):
        session = ConfigSession([config_path], registry=registry, settings=manual_settings)
        session.close()

        with pytest.raises(RuntimeError):
            session.reload_now()

    def test_on_reload_delegates(self, registry, config_path, manual_settings):
        results = []

        with ConfigSession(
            [config_path], registry=registry, settings=manual_settings
        ) as session:
            session.on_reload(results.append)
            session.reload_now()
            session.remove_callback(results.append)
            session.reload_now()

        assert len(results) == 1

    def test_registry_outlives_session(self, registry, config_path, manual_settings):
        """세션이 닫혀도 슬롯과 값은 유지"""
        seven = config_int("seven", registry=registry)

        with ConfigSession([config_path], registry=registry, settings=manual_settings):
            pass

        assert registry.get("seven") is seven
        assert seven.value == 7

    def test_finalizer_stops_watcher(self, registry, config_path, manual_settings):
        """close() 없이 참조가 사라져도 감시 스레드 정리"""
        session = ConfigSession([config_path], registry=registry, settings=manual_settings)
        watcher = session.watcher

        del session
        gc.collect()

        assert not watcher.running

    @pytest.mark.asyncio
    async def test_async_context_manager(self, registry, config_path, manual_settings):
        seven = config_int("seven", registry=registry)

        async with open_session(
            [config_path], registry=registry, settings=manual_settings
        ) as session:
            assert seven.value == 7

        assert session.closed
        assert not session.watcher.running


class TestWatcherSettings:
    """감시자 설정 테스트"""

    def test_defaults(self):
        settings = WatcherSettings()

        assert settings.poll_interval == 0.05
        assert settings.quiet_periods == 2
        assert settings.quiet_interval == pytest.approx(0.1)
        assert settings.watch_enabled

    def test_from_env(self):
        with patch.dict(
            os.environ,
            {
                "CONFIG_READER_POLL_INTERVAL": "0.2",
                "CONFIG_READER_QUIET_PERIODS": "3",
                "CONFIG_READER_WATCH_ENABLED": "false",
            },
        ):
            settings = WatcherSettings.from_env()

        assert settings.poll_interval == 0.2
        assert settings.quiet_periods == 3
        assert settings.quiet_interval == pytest.approx(0.6)
        assert not settings.watch_enabled

    def test_from_env_defaults_when_unset(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = WatcherSettings.from_env()

        assert settings == WatcherSettings()

    def test_invalid_env_rejected(self):
        with patch.dict(os.environ, {"CONFIG_READER_POLL_INTERVAL": "-1"}):
            with pytest.raises(ValidationError):
                WatcherSettings.from_env()

    def test_quiet_periods_minimum(self):
        with pytest.raises(ValidationError):
            WatcherSettings(quiet_periods=0)
