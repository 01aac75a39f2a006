import asyncio
import re
import logging
import time
from collections import deque
from typing import AsyncIterator, Callable, List, Optional
from aive.config.models import EngineConfig
from aive.domain.errors import EngineError, EngineUnavailableError
from aive.domain.models import OperationParameters, OperationType

# Regex to parse 'time=00:00:00.00' from ffmpeg output
TIME_REGEX = re.compile(r"time=(\d+):(\d+):(\d+(?:\.\d+)?)")
STDERR_TAIL_LINES = 20


def format_seconds(value: float) -> str:
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return text or "0"


def parse_progress_seconds(line: str) -> Optional[float]:
    match = TIME_REGEX.search(line)
    if not match:
        return None
    h, m, s = map(float, match.groups())
    return h * 3600 + m * 60 + s


async def iter_lines(stream: asyncio.StreamReader, chunk_size: int = 4096) -> AsyncIterator[str]:
    """Yields lines split on either newline; ffmpeg redraws its status line with '\\r'."""
    buffer = ""
    while True:
        chunk = await stream.read(chunk_size)
        if not chunk:
            break
        buffer += chunk.decode(errors="replace")
        parts = re.split(r"[\r\n]", buffer)
        buffer = parts.pop()
        for part in parts:
            if part:
                yield part
    if buffer:
        yield buffer


class FFmpegAdapter:
    """Wrapper around ffmpeg that turns a validated operation into a transcode."""

    def __init__(self, config: Optional[EngineConfig] = None, debug: bool = False):
        self.config = config or EngineConfig()
        self.debug = debug
        self.logger = logging.getLogger(__name__)

    def _build_command(
        self,
        operation_type: OperationType,
        params: OperationParameters,
        input_path: str,
        output_path: str
    ) -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        cmd = [
            self.config.ffmpeg_path,
            "-y", # Overwrite output files
            "-i", str(input_path),
        ]

        if operation_type == OperationType.TRIM:
            # No end time means pass-through
            if params.end_time is not None:
                cmd.extend([
                    "-ss", format_seconds(params.start_time),
                    "-t", format_seconds(params.end_time - params.start_time)
                ])
        elif operation_type == OperationType.CUT:
            # Keeps [cutStart, cutEnd), same as trim
            if params.cut_start is not None and params.cut_end is not None:
                cmd.extend([
                    "-ss", format_seconds(params.cut_start),
                    "-t", format_seconds(params.cut_end - params.cut_start)
                ])
        elif operation_type == OperationType.RESIZE:
            cmd.extend(["-vf", f"scale={params.width}:{params.height}"])
        elif operation_type == OperationType.OVERLAY:
            cmd.extend([
                "-i", params.overlay_path,
                "-filter_complex", f"[0:v][1:v]overlay={params.x}:{params.y}[out]",
                "-map", "[out]",
                "-map", "0:a?"
            ])
        elif operation_type == OperationType.AUDIO:
            if params.audio_path:
                source = "[0:a]"
                graph = []
                if params.volume is not None:
                    graph.append(f"[0:a]volume={format_seconds(params.volume)}[a0]")
                    source = "[a0]"
                graph.append(f"{source}[1:a]amix=inputs=2:duration=first[aout]")
                cmd.extend([
                    "-i", params.audio_path,
                    "-filter_complex", ";".join(graph),
                    "-map", "0:v?",
                    "-map", "[aout]"
                ])
            elif params.volume is not None:
                cmd.extend(["-af", f"volume={format_seconds(params.volume)}"])

        cmd.extend([
            "-c:v", self.config.video_codec,
            "-c:a", self.config.audio_codec,
            "-preset", self.config.preset,
        ])
        cmd.append(str(output_path))
        return cmd

    async def run(
        self,
        operation_type: OperationType,
        params: OperationParameters,
        input_path: str,
        output_path: str,
        expected_duration: float = 0.0,
        on_progress: Optional[Callable[[int], None]] = None
    ) -> None:
        """Executes ffmpeg, reporting percentage progress; raises EngineError on failure."""
        cmd = self._build_command(operation_type, params, input_path, output_path)
        start_time = time.monotonic()

        if self.debug:
            self.logger.info(f"FFMPEG_START: {operation_type.value} {input_path} -> {output_path}")
            self.logger.debug(f"FFMPEG_CMD: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE
            )
        except FileNotFoundError as e:
            raise EngineUnavailableError(f"ffmpeg not found at {self.config.ffmpeg_path}") from e
        except OSError as e:
            raise EngineError(f"ffmpeg could not be started: {e}") from e

        tail = deque(maxlen=STDERR_TAIL_LINES)
        last_percent = -1
        async for line in iter_lines(process.stderr):
            tail.append(line)
            seconds = parse_progress_seconds(line)
            if seconds is None or expected_duration <= 0 or on_progress is None:
                continue
            percent = max(0, min(100, int(seconds / expected_duration * 100)))
            if percent != last_percent:
                last_percent = percent
                on_progress(percent)

        returncode = await process.wait()
        elapsed = time.monotonic() - start_time

        if returncode != 0:
            stderr_tail = "\n".join(tail)
            reason = tail[-1] if tail else "no output"
            if self.debug:
                self.logger.info(f"FFMPEG_END: {output_path} status=failed code={returncode} elapsed={elapsed:.2f}s")
            raise EngineError(f"ffmpeg exited with code {returncode}: {reason}", returncode, stderr_tail)

        if self.debug:
            self.logger.info(f"FFMPEG_END: {output_path} status=completed elapsed={elapsed:.2f}s")
