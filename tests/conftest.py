import json
import pytest
from pathlib import Path
from typing import Dict, List, Optional
from aive.domain.errors import EngineError, ProbeError
from aive.domain.models import TrimParameters, CutParameters, VideoInfo
from aive.infrastructure.event_bus import EventBus
from aive.infrastructure.registry import OperationRegistry
from aive.pipeline.coordinator import PipelineCoordinator
from aive.pipeline.executor import OperationExecutor
from aive.pipeline.interpreter import CommandInterpreter
from aive.pipeline.materializer import ResultMaterializer


class StubLLM:
    """Language model returning canned text, recording every prompt."""

    def __init__(self, response="", models=None, error: Optional[Exception] = None):
        self.model = "mistral:latest"
        self.response = response
        self.models = models if models is not None else ["mistral:latest"]
        self.error = error
        self.calls: List[Dict[str, str]] = []

    async def chat(self, system: str, user: str) -> str:
        self.calls.append({"system": system, "user": user})
        if self.error:
            raise self.error
        return self.response

    async def list_models(self) -> List[str]:
        if self.error:
            raise self.error
        return self.models


class FakeMedia:
    """Shared view of 'files' produced by the fake engine, with their durations."""

    def __init__(self, default_duration: float = 30.0):
        self.default_duration = default_duration
        self.durations: Dict[str, float] = {}


class FakeFFmpeg:
    """Stands in for FFmpegAdapter: writes the output file and reports progress."""

    def __init__(self, media: FakeMedia, fail_on_call: Optional[int] = None):
        self.media = media
        self.fail_on_call = fail_on_call
        self.calls = []

    async def run(self, operation_type, params, input_path, output_path, expected_duration=0.0, on_progress=None):
        self.calls.append({
            "type": operation_type,
            "params": params,
            "input": input_path,
            "output": output_path,
            "expected_duration": expected_duration,
        })
        if self.fail_on_call is not None and len(self.calls) - 1 == self.fail_on_call:
            raise EngineError("ffmpeg exited with code 1: Invalid data found when processing input", 1)
        if on_progress:
            on_progress(50)
            on_progress(100)

        duration = self.media.durations.get(str(input_path), self.media.default_duration)
        if isinstance(params, TrimParameters) and params.end_time is not None:
            duration = params.end_time - params.start_time
        elif isinstance(params, CutParameters) and params.cut_start is not None and params.cut_end is not None:
            duration = params.cut_end - params.cut_start
        self.media.durations[str(output_path)] = duration
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        Path(output_path).write_bytes(b"fake video " + operation_type.value.encode())


class FakeFFprobe:
    def __init__(self, media: FakeMedia, fail: bool = False):
        self.media = media
        self.fail = fail

    async def get_video_info(self, file_path) -> VideoInfo:
        if self.fail:
            raise ProbeError(f"ffprobe failed for {file_path}")
        duration = self.media.durations.get(str(file_path), self.media.default_duration)
        return VideoInfo(duration=duration, width=1920, height=1080, fps=30.0)


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def registry():
    return OperationRegistry()


@pytest.fixture
def fake_ffmpeg(media):
    return FakeFFmpeg(media)


@pytest.fixture
def fake_ffprobe(media):
    return FakeFFprobe(media)


@pytest.fixture
def executor(registry, fake_ffmpeg, fake_ffprobe, bus):
    return OperationExecutor(
        registry=registry,
        ffmpeg_adapter=fake_ffmpeg,
        ffprobe_adapter=fake_ffprobe,
        event_bus=bus
    )


@pytest.fixture
def make_executor(registry, bus, media):
    """Executor with its own fake engine, for tests needing failures or custom config."""
    def _make(config=None, fail_on_call=None, probe_fails=False):
        return OperationExecutor(
            registry=registry,
            ffmpeg_adapter=FakeFFmpeg(media, fail_on_call=fail_on_call),
            ffprobe_adapter=FakeFFprobe(media, fail=probe_fails),
            event_bus=bus,
            config=config
        )
    return _make


@pytest.fixture
def input_video(tmp_path):
    path = tmp_path / "clips" / "holiday.mp4"
    path.parent.mkdir()
    path.write_bytes(b"original video")
    return path


@pytest.fixture
def make_coordinator(executor, registry):
    """Builds a coordinator around a stub model answering with the given text."""
    def _make(response="", error=None, threshold=50 * 1024 * 1024):
        llm = StubLLM(response=response, error=error)
        interpreter = CommandInterpreter(llm)
        return PipelineCoordinator(interpreter, executor, ResultMaterializer(threshold), registry), llm
    return _make


def model_reply(operation: str, parameters: dict, description: str = "") -> str:
    return json.dumps({"operation": operation, "parameters": parameters, "description": description})


@pytest.fixture(name="model_reply")
def model_reply_fixture():
    return model_reply


@pytest.fixture
def make_llm():
    return StubLLM
