"""
감시자 설정

환경변수 기반 설정 관리.
"""

import os

from pydantic import BaseModel, Field

_TRUE_VALUES = ("1", "true", "yes", "on")


class WatcherSettings(BaseModel):
    """ConfigWatcher 동작 설정"""

    # 파일 이벤트 대기 주기 (초)
    poll_interval: float = Field(default=0.05, gt=0)
    # 마지막 변경 이후 리로드까지 필요한 조용한 주기 수
    quiet_periods: int = Field(default=2, ge=1)
    # False면 파일 감시 없이 새 키 등록 시 리로드만 수행
    watch_enabled: bool = True

    @property
    def quiet_interval(self) -> float:
        """디바운스 조용한 구간 (초)"""
        return self.poll_interval * self.quiet_periods

    @classmethod
    def from_env(cls) -> "WatcherSettings":
        """환경변수에서 설정 로드

        Raises:
            pydantic.ValidationError: 값 형식/범위가 잘못되었을 때
        """
        data: dict[str, object] = {}

        poll_interval = os.getenv("CONFIG_READER_POLL_INTERVAL")
        if poll_interval:
            data["poll_interval"] = poll_interval

        quiet_periods = os.getenv("CONFIG_READER_QUIET_PERIODS")
        if quiet_periods:
            data["quiet_periods"] = quiet_periods

        watch_enabled = os.getenv("CONFIG_READER_WATCH_ENABLED")
        if watch_enabled:
            data["watch_enabled"] = watch_enabled.strip().lower() in _TRUE_VALUES

        return cls.model_validate(data)
