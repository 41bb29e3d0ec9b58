# -*- coding: utf-8 -*-
"""
FFmpeg 릴레이 프로세스.

RTSP 입력을 브라우저 재생용 포맷(MPEG-TS/mpeg1video)으로 변환해
출력 URL로 보내는 FFmpeg 프로세스를 관리합니다.
"""

from __future__ import annotations

import subprocess
import threading
from typing import Any, Callable

from rtsp_relay.common.errors import ErrorCode, ProcessError
from rtsp_relay.common.logging import get_logger
from rtsp_relay.domain.interfaces.process import DiagnosticListener, ExitListener
from rtsp_relay.domain.models.stream import StreamConfig, mask_url


STDERR_CHUNK_SIZE = 4096


class FFmpegRelayProcess:
    """
    FFmpeg 릴레이 프로세스 핸들.

    stderr는 줄 단위가 아닌 조각 단위로 읽습니다. FFmpeg 진행 상황
    라인(frame=...)은 '\\r'로 끝나므로 readline()으로는 제때 받을 수 없습니다.
    """

    def __init__(
        self,
        config: StreamConfig,
        ffmpeg_path: str = "ffmpeg",
        popen_factory: Callable[..., Any] = subprocess.Popen,
    ) -> None:
        """
        FFmpegRelayProcess 초기화.

        Args:
            config: 스트림 설정
            ffmpeg_path: FFmpeg 실행 파일 경로
            popen_factory: 프로세스 생성 함수 (테스트 시 교체)
        """
        self._config = config
        self._ffmpeg_path = ffmpeg_path
        self._popen_factory = popen_factory

        self._process: Any | None = None
        self._lock = threading.Lock()
        self._stop_requested = False
        self._returncode: int | None = None
        self._chunk_count = 0

        self._exit_listeners: list[ExitListener] = []
        self._diagnostic_listeners: list[DiagnosticListener] = []
        self._stderr_thread: threading.Thread | None = None
        self._exit_thread: threading.Thread | None = None

        self._logger = get_logger(__name__, stream_id=config.name)

    @property
    def is_running(self) -> bool:
        """실행 상태 반환."""
        process = self._process
        return process is not None and process.poll() is None

    @property
    def pid(self) -> int | None:
        process = self._process
        return process.pid if process is not None else None

    @property
    def returncode(self) -> int | None:
        return self._returncode

    def add_exit_listener(self, callback: ExitListener) -> None:
        self._exit_listeners.append(callback)

    def add_diagnostic_listener(self, callback: DiagnosticListener) -> None:
        self._diagnostic_listeners.append(callback)

    def start(self) -> None:
        """
        FFmpeg 프로세스를 시작합니다.

        Raises:
            ProcessError: FFmpeg 실행 실패 시
        """
        with self._lock:
            if self.is_running:
                self._logger.warning("FFmpeg 릴레이가 이미 실행 중")
                return

            cmd = self.build_command()
            self._logger.debug("FFmpeg 명령", cmd=mask_url(" ".join(cmd)))

            try:
                # stdout는 사용하지 않음 (출력은 output_url로 전송)
                process = self._popen_factory(
                    cmd,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.PIPE,
                )
            except FileNotFoundError as e:
                raise ProcessError(
                    ErrorCode.PROCESS_START_FAILED,
                    f"FFmpeg를 찾을 수 없습니다: {self._ffmpeg_path}",
                    stream_id=self._config.name,
                ) from e
            except OSError as e:
                raise ProcessError(
                    ErrorCode.PROCESS_START_FAILED,
                    f"FFmpeg 시작 실패: {e}",
                    stream_id=self._config.name,
                    details={"error": str(e)},
                ) from e

            self._process = process
            self._stop_requested = False
            self._returncode = None
            self._chunk_count = 0

            self._stderr_thread = threading.Thread(
                target=self._read_stderr,
                args=(process,),
                name=f"ffmpeg_stderr_{self._config.name}",
                daemon=True,
            )
            self._stderr_thread.start()

            self._exit_thread = threading.Thread(
                target=self._watch_exit,
                args=(process,),
                name=f"ffmpeg_exit_{self._config.name}",
                daemon=True,
            )
            self._exit_thread.start()

            self._logger.info(
                "FFmpeg 릴레이 시작",
                pid=getattr(process, "pid", None),
                output_url=mask_url(self._config.output_url),
            )

    def stop(self, timeout: float = 5.0) -> None:
        """
        FFmpeg 프로세스를 중지합니다. 이미 중지된 경우 아무것도 하지 않습니다.

        Args:
            timeout: 종료 대기 시간 (초)

        Raises:
            ProcessError: 종료 신호 전달에 실패한 경우
        """
        with self._lock:
            self._stop_requested = True
            process = self._process
            if process is None:
                return
            self._process = None

            if process.poll() is not None:
                self._returncode = process.returncode
                return

            try:
                process.terminate()
                try:
                    self._returncode = process.wait(timeout=timeout)
                except subprocess.TimeoutExpired:
                    self._logger.warning("FFmpeg 종료 타임아웃, 강제 종료")
                    process.kill()
                    self._returncode = process.wait(timeout=1.0)
            except ProcessLookupError:
                # 이미 종료됨
                pass
            except (OSError, subprocess.SubprocessError) as e:
                raise ProcessError(
                    ErrorCode.PROCESS_STOP_FAILED,
                    f"FFmpeg 중지 실패: {e}",
                    stream_id=self._config.name,
                ) from e

            self._logger.info("FFmpeg 릴레이 중지 완료", returncode=self._returncode)

    def _read_stderr(self, process: Any) -> None:
        """stderr 조각을 진단 리스너로 순서대로 전달합니다."""
        stream = process.stderr
        if stream is None:
            return

        read = getattr(stream, "read1", stream.read)
        try:
            while True:
                chunk = read(STDERR_CHUNK_SIZE)
                if not chunk:
                    break
                text = chunk.decode("utf-8", errors="replace") if isinstance(chunk, bytes) else chunk
                self._chunk_count += 1
                for listener in list(self._diagnostic_listeners):
                    try:
                        listener(text)
                    except Exception as e:
                        self._logger.error(f"진단 리스너 오류: {e}")
        except (OSError, ValueError):
            # 프로세스 종료로 파이프가 닫힘
            pass

    def _watch_exit(self, process: Any) -> None:
        """
        프로세스 종료를 기다렸다가 비정상 종료를 통지합니다.

        stop()으로 요청하지 않은 종료는 종료 코드가 0이어도 통지합니다.
        """
        returncode = process.wait()

        stderr_thread = self._stderr_thread
        if stderr_thread is not None and stderr_thread is not threading.current_thread():
            stderr_thread.join(timeout=1.0)

        with self._lock:
            self._returncode = returncode
            if self._stop_requested:
                return
            if self._process is process:
                self._process = None

        self._logger.debug(f"FFmpeg 비정상 종료 (code={returncode})")
        for listener in list(self._exit_listeners):
            try:
                listener(returncode)
            except Exception as e:
                self._logger.exception(f"종료 리스너 오류: {e}")

    def build_command(self) -> list[str]:
        """FFmpeg 명령 구성."""
        cmd = [self._ffmpeg_path]
        if self._config.rtsp_transport:
            cmd += ["-rtsp_transport", self._config.rtsp_transport]
        cmd += ["-i", self._config.source_url, "-f", self._config.output_format]

        # 옵션 순서 유지, 빈 문자열은 플래그만 추가 (예: "-stats": "")
        for option, value in self._config.ffmpeg_options.items():
            cmd.append(str(option))
            if value is not None and str(value) != "":
                cmd.append(str(value))

        cmd.append(self._config.output_url)
        return cmd

    def get_stats(self) -> dict:
        """통계 정보 반환."""
        return {
            "stream_id": self._config.name,
            "running": self.is_running,
            "pid": self.pid,
            "returncode": self._returncode,
            "stderr_chunks": self._chunk_count,
        }

    def __enter__(self) -> FFmpegRelayProcess:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()


def create_ffmpeg_relay(ffmpeg_path: str = "ffmpeg") -> Callable[[StreamConfig], FFmpegRelayProcess]:
    """감시자에 주입할 핸들 팩토리를 만듭니다."""

    def factory(config: StreamConfig) -> FFmpegRelayProcess:
        return FFmpegRelayProcess(config, ffmpeg_path=ffmpeg_path)

    return factory
