"""
에러 분류 시스템

설정 키 선언/리로드 과정에서 발생하는 에러를 치명적 여부에 따라 분류합니다.

- 치명적(FATAL): 같은 키를 다른 타입으로 재선언 등 프로그래밍 오류
- 복구 가능(RECOVERABLE): 스크립트 로드 실패, 타입 불일치, 범위 위반 등
  데이터 오류. 슬롯은 마지막 정상 값을 유지합니다.
"""

import traceback
from enum import Enum


class ErrorCategory(str, Enum):
    """에러 카테고리"""

    FATAL = "fatal"  # 프로그래밍 오류, 복구 불가
    RECOVERABLE = "recoverable"  # 데이터 오류, 이전 값 유지
    DIAGNOSTIC = "diagnostic"  # 로그만 남김
    UNKNOWN = "unknown"


class ConfigReaderError(Exception):
    """config_reader 기본 에러"""

    default_category = ErrorCategory.UNKNOWN

    def __init__(self, message: str, category: ErrorCategory | None = None):
        super().__init__(message)
        self.category = category or self.default_category


class KindMismatchError(ConfigReaderError):
    """이미 등록된 키를 다른 타입으로 선언"""

    default_category = ErrorCategory.FATAL

    def __init__(self, key: str, existing, requested, sites: list[str] | None = None):
        self.key = key
        self.existing = existing
        self.requested = requested
        self.sites = list(sites or [])
        super().__init__(
            f"키 '{key}' 타입 불일치: 기존 타입 {existing.value}, "
            f"요청 타입 {requested.value}"
        )


class RegistryIntegrityError(ConfigReaderError):
    """레지스트리 내부 정합성 오류 (타입 없는 슬롯)"""

    default_category = ErrorCategory.FATAL


class ScriptLoadError(ConfigReaderError):
    """설정 스크립트 평가 실패"""

    default_category = ErrorCategory.RECOVERABLE

    def __init__(self, file: str, reason: str):
        self.file = file
        self.reason = reason
        super().__init__(f"스크립트 로드 실패 ({file}): {reason}")


class ValueKindError(ConfigReaderError):
    """조회된 값의 타입이 선언 타입과 다름"""

    default_category = ErrorCategory.RECOVERABLE


class BoundsError(ConfigReaderError):
    """숫자 값이 선언된 범위를 벗어남"""

    default_category = ErrorCategory.RECOVERABLE

    def __init__(self, key: str, value, bounds):
        self.key = key
        self.value = value
        self.bounds = bounds
        super().__init__(f"[{key}] 값 {value}이(가) 범위 밖입니다: {bounds}")


class ErrorClassifier:
    """에러 분류기"""

    @classmethod
    def classify(cls, error: Exception) -> ErrorCategory:
        """에러를 분류하여 카테고리 반환

        Args:
            error: 분류할 예외 객체

        Returns:
            ErrorCategory: 치명적 여부에 따른 카테고리
        """
        if isinstance(error, ConfigReaderError):
            return error.category

        # 예외 타입 기반 분류
        if isinstance(error, (OSError, ValueError, TypeError, KeyError)):
            return ErrorCategory.RECOVERABLE

        return ErrorCategory.UNKNOWN

    @classmethod
    def format_message(
        cls, error: Exception, include_traceback: bool = False
    ) -> str:
        """에러 메시지 포맷팅

        Args:
            error: 포맷팅할 예외 객체
            include_traceback: 상세 스택 트레이스 포함 여부

        Returns:
            str: 카테고리 라벨이 포함된 에러 메시지
        """
        category = cls.classify(error)
        label = {
            ErrorCategory.FATAL: "[치명적]",
            ErrorCategory.RECOVERABLE: "[복구 가능]",
            ErrorCategory.DIAGNOSTIC: "[진단]",
            ErrorCategory.UNKNOWN: "[분류되지 않음]",
        }

        message = f"{label[category]} {type(error).__name__}: {str(error)}"

        if include_traceback:
            message += f"\n\n상세 정보:\n{traceback.format_exc()}"

        return message
