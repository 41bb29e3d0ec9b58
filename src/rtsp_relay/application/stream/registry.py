"""
스트림 레지스트리

설정된 스트림마다 감시자 하나를 생성하고 소유합니다.
감시자 간에 공유되는 가변 상태는 이 레지스트리 외에는 없습니다.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Iterable

from rtsp_relay.application.stream.supervisor import StreamSupervisor
from rtsp_relay.common.errors import ErrorCode, StreamError
from rtsp_relay.common.logging import get_logger
from rtsp_relay.domain.interfaces.process import ProcessHandleFactory
from rtsp_relay.domain.models.stream import StreamConfig, SupervisorState, SupervisorStatus

logger = get_logger(__name__)


class StreamRegistry:
    """
    감시자 레지스트리

    Example:
        >>> registry = StreamRegistry(handle_factory=create_ffmpeg_relay())
        >>> registry.load(configs)
        >>> ...
        >>> registry.stop_all()
    """

    def __init__(
        self,
        handle_factory: ProcessHandleFactory,
        **supervisor_options: Any,
    ) -> None:
        """
        Args:
            handle_factory: FFmpeg 핸들 팩토리
            supervisor_options: StreamSupervisor에 그대로 전달할 옵션
                (prober, detector_factory, timer_factory, clock)
        """
        self._handle_factory = handle_factory
        self._supervisor_options = supervisor_options
        self._supervisors: dict[str, StreamSupervisor] = {}
        self._lock = threading.RLock()

        self._on_status_change: Callable[[str, SupervisorStatus], None] | None = None
        self._on_abandoned: Callable[[str, StreamError], None] | None = None

    def set_on_status_change(
        self, callback: Callable[[str, SupervisorStatus], None] | None
    ) -> None:
        self._on_status_change = callback
        with self._lock:
            for supervisor in self._supervisors.values():
                supervisor.set_on_status_change(callback)

    def set_on_abandoned(self, callback: Callable[[str, StreamError], None] | None) -> None:
        self._on_abandoned = callback
        with self._lock:
            for supervisor in self._supervisors.values():
                supervisor.set_on_abandoned(callback)

    def load(self, configs: Iterable[StreamConfig]) -> list[StreamSupervisor]:
        """
        설정 목록으로 감시자를 생성하고 시작합니다. enabled=False인 스트림은 건너뜁니다.

        Raises:
            StreamError: 이름이 중복된 경우
        """
        started: list[StreamSupervisor] = []
        for config in configs:
            if not config.enabled:
                logger.info(f"비활성 스트림 건너뜀: {config.name}", stream_id=config.name)
                continue
            started.append(self.register(config))
        logger.info(f"스트림 감시 시작: {len(started)}개")
        return started

    def register(self, config: StreamConfig, start: bool = True) -> StreamSupervisor:
        """
        감시자를 생성해 등록하고, 기본적으로 바로 시작합니다.

        Raises:
            StreamError: 같은 이름의 스트림이 이미 등록된 경우
        """
        with self._lock:
            if config.name in self._supervisors:
                raise StreamError(
                    ErrorCode.STREAM_ALREADY_REGISTERED,
                    f"이미 등록된 스트림입니다: {config.name}",
                    stream_id=config.name,
                )

            supervisor = StreamSupervisor(
                config,
                handle_factory=self._handle_factory,
                **self._supervisor_options,
            )
            supervisor.set_on_status_change(self._on_status_change)
            supervisor.set_on_abandoned(self._on_abandoned)
            self._supervisors[config.name] = supervisor

            logger.info(f"Starting camera: {config.name}", stream_id=config.name)

        if start:
            supervisor.start()
        return supervisor

    def get(self, name: str) -> StreamSupervisor:
        with self._lock:
            supervisor = self._supervisors.get(name)
        if supervisor is None:
            raise StreamError(
                ErrorCode.STREAM_NOT_FOUND,
                f"스트림을 찾을 수 없습니다: {name}",
                stream_id=name,
            )
        return supervisor

    def remove(self, name: str) -> None:
        """감시자를 종료하고 레지스트리에서 제거합니다."""
        supervisor = self.get(name)
        supervisor.close()
        with self._lock:
            self._supervisors.pop(name, None)
        logger.info(f"스트림 제거: {name}", stream_id=name)

    def redeploy(self, name: str) -> StreamSupervisor:
        """
        같은 설정으로 감시자를 새로 만듭니다.

        재시도 횟수는 재배포할 때만 초기화됩니다. 포기(ABANDONED)된 스트림을
        다시 살릴 때 사용합니다.
        """
        config = self.get(name).config
        self.remove(name)
        return self.register(config)

    def get_all(self) -> list[StreamSupervisor]:
        with self._lock:
            return list(self._supervisors.values())

    def get_all_states(self) -> list[SupervisorState]:
        return [supervisor.state for supervisor in self.get_all()]

    def names(self) -> list[str]:
        with self._lock:
            return list(self._supervisors.keys())

    def stop_all(self) -> None:
        """모든 감시자를 종료합니다. 하나가 실패해도 나머지는 계속 종료합니다."""
        for supervisor in self.get_all():
            try:
                supervisor.close()
            except Exception as e:
                logger.error(f"스트림 종료 오류: {supervisor.name} - {e}", stream_id=supervisor.name)
        with self._lock:
            self._supervisors.clear()

    def get_stats(self) -> dict[str, Any]:
        supervisors = self.get_all()
        return {
            "total_streams": len(supervisors),
            "running_streams": sum(
                1 for s in supervisors if s.status == SupervisorStatus.RUNNING
            ),
            "abandoned_streams": [
                s.name for s in supervisors if s.status == SupervisorStatus.ABANDONED
            ],
            "streams": {s.name: s.state.to_summary() for s in supervisors},
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._supervisors)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._supervisors
