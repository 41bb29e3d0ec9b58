"""
에러 처리 모듈

rtsp_relay 전체에서 사용하는 예외 클래스와 에러 코드를 정의합니다.
모든 예외는 RelayError를 상속받아 일관된 에러 처리가 가능합니다.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """에러 코드 열거형"""

    # 스트림 관련
    STREAM_NOT_FOUND = "STREAM_NOT_FOUND"                   # 스트림 없음
    STREAM_ALREADY_REGISTERED = "STREAM_ALREADY_REGISTERED" # 스트림 이름 중복
    STREAM_ABANDONED = "STREAM_ABANDONED"                   # 재시도 한도 초과
    STREAM_CLOSED = "STREAM_CLOSED"                         # 이미 종료된 감시자

    # 프로세스 관련
    PROCESS_START_FAILED = "PROCESS_START_FAILED"   # FFmpeg 실행 실패
    PROCESS_STOP_FAILED = "PROCESS_STOP_FAILED"     # FFmpeg 종료 실패

    # 설정 관련
    CONFIG_INVALID = "CONFIG_INVALID"               # 설정 검증 실패
    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"           # 설정 파일 없음
    CONFIG_PARSE_ERROR = "CONFIG_PARSE_ERROR"       # 설정 파싱 오류
    CONFIG_SOURCE_FAILED = "CONFIG_SOURCE_FAILED"   # DB 등 설정 소스 조회 실패


class RelayError(Exception):
    """
    rtsp_relay 기본 예외 클래스

    Attributes:
        code: 에러 코드 (ErrorCode)
        message: 사용자에게 표시할 메시지
        details: 추가 상세 정보 (디버깅용)
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """예외 정보를 딕셔너리로 변환합니다."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


class StreamError(RelayError):
    """
    스트림 관련 예외

    레지스트리 조회, 중복 등록 등 스트림 관리 중 발생하는 오류를 나타냅니다.

    Attributes:
        stream_id: 오류가 발생한 스트림 이름
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        stream_id: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.stream_id = stream_id
        _details = {"stream_id": stream_id}
        if details:
            _details.update(details)
        super().__init__(code, message, _details)


class ProcessError(RelayError):
    """
    FFmpeg 프로세스 관련 예외

    Attributes:
        stream_id: 프로세스를 소유한 스트림 이름
        returncode: 종료 코드 (알 수 있는 경우)
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        stream_id: str,
        returncode: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.stream_id = stream_id
        self.returncode = returncode
        _details: dict[str, Any] = {"stream_id": stream_id}
        if returncode is not None:
            _details["returncode"] = returncode
        if details:
            _details.update(details)
        super().__init__(code, message, _details)


class ConfigError(RelayError):
    """
    설정 관련 예외

    설정 파일/DB의 로드, 파싱, 검증 중 발생하는 오류를 나타냅니다.

    Attributes:
        config_path: 오류가 발생한 설정 파일 경로 또는 소스 (선택)
        field_name: 오류가 발생한 필드 이름 (선택)
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        config_path: str | None = None,
        field_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.config_path = config_path
        self.field_name = field_name
        _details: dict[str, Any] = {}
        if config_path:
            _details["config_path"] = config_path
        if field_name:
            _details["field_name"] = field_name
        if details:
            _details.update(details)
        super().__init__(code, message, _details)
