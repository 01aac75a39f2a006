import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Union
from aive.domain.errors import ProbeError
from aive.domain.models import VideoInfo


def parse_frame_rate(fps_str: str) -> float:
    """Parses ffprobe's 'num/den' frame rates, discarding timebase-like values."""
    if not fps_str:
        return 0.0
    try:
        if "/" in fps_str:
            num, den = map(float, fps_str.split("/"))
            if den == 0:
                return 0.0
            candidate = num / den
        else:
            candidate = float(fps_str)
    except ValueError:
        return 0.0
    return round(candidate, 3) if candidate <= 240 else 0.0


class FFprobeAdapter:
    """Wrapper around ffprobe to extract duration, frame size and rate."""

    def __init__(self, ffprobe_path: str = "ffprobe"):
        self.ffprobe_path = ffprobe_path
        self.logger = logging.getLogger(__name__)

    def _build_command(self, file_path: Union[str, Path]):
        return [
            self.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_streams",
            "-show_format",
            str(file_path)
        ]

    async def _run(self, file_path: Union[str, Path]) -> Dict[str, Any]:
        try:
            process = await asyncio.create_subprocess_exec(
                *self._build_command(file_path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except FileNotFoundError as e:
            raise ProbeError(f"ffprobe not found at {self.ffprobe_path}") from e

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise ProbeError(f"ffprobe failed for {file_path}: {stderr.decode(errors='replace').strip()}")
        try:
            return json.loads(stdout.decode())
        except json.JSONDecodeError as e:
            raise ProbeError(f"ffprobe returned invalid JSON for {file_path}") from e

    async def get_video_info(self, file_path: Union[str, Path]) -> VideoInfo:
        """Executes ffprobe and parses the first video stream."""
        data = await self._run(file_path)

        video_stream = next((s for s in data.get("streams", []) if s.get("codec_type") == "video"), None)
        if not video_stream:
            raise ProbeError(f"No video stream found in {file_path}")

        # avg_frame_rate is reliable; r_frame_rate is sometimes the timebase
        fps = parse_frame_rate(video_stream.get("avg_frame_rate", "")) or parse_frame_rate(video_stream.get("r_frame_rate", ""))
        fmt = data.get("format", {})

        info = VideoInfo(
            duration=float(fmt.get("duration") or 0.0),
            width=int(video_stream.get("width", 0)),
            height=int(video_stream.get("height", 0)),
            fps=fps,
            size=int(fmt.get("size") or 0),
            format=Path(str(file_path)).suffix.lstrip(".").lower(),
        )
        self.logger.debug(f"FFPROBE: {file_path} duration={info.duration:.2f}s {info.width}x{info.height}@{info.fps}")
        return info

    async def get_duration(self, file_path: Union[str, Path]) -> float:
        info = await self.get_video_info(file_path)
        return info.duration
