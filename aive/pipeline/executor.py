import logging
import os
import threading
import time
from functools import reduce
from pathlib import Path
from typing import List, Optional, Sequence, Union
from aive.config.models import EngineConfig
from aive.domain.errors import AiveError, OperationError, OperationValidationError, ProbeError
from aive.domain.events import OperationCompleted, OperationFailed, OperationProgressUpdated, OperationStarted
from aive.domain.models import (
    ChainLink, CutParameters, ExecutionResult, OperationDescriptor, OperationParameters,
    OperationStatus, OperationType, TrimParameters, VideoInfo
)
from aive.infrastructure.event_bus import EventBus
from aive.infrastructure.ffmpeg import FFmpegAdapter
from aive.infrastructure.ffprobe import FFprobeAdapter
from aive.infrastructure.registry import OperationRegistry

PathLike = Union[str, Path]

_stamp_lock = threading.Lock()
_last_stamp = 0


def unique_timestamp() -> int:
    """Nanosecond wall-clock stamp, strictly increasing within the process."""
    global _last_stamp
    with _stamp_lock:
        stamp = time.time_ns()
        if stamp <= _last_stamp:
            stamp = _last_stamp + 1
        _last_stamp = stamp
        return stamp


class OperationExecutor:
    """Drives operations through ffmpeg, tracking status and progress in the registry."""

    def __init__(
        self,
        registry: OperationRegistry,
        ffmpeg_adapter: FFmpegAdapter,
        ffprobe_adapter: FFprobeAdapter,
        event_bus: EventBus,
        config: Optional[EngineConfig] = None
    ):
        self.registry = registry
        self.ffmpeg_adapter = ffmpeg_adapter
        self.ffprobe_adapter = ffprobe_adapter
        self.event_bus = event_bus
        self.config = config or EngineConfig()
        self.logger = logging.getLogger(__name__)

    def generate_output_path(self, input_path: PathLike, operation_type: Union[OperationType, str]) -> str:
        """<dir>/<stem>_<type>_<timestamp>.<ext> next to the input."""
        source = Path(input_path)
        op_name = operation_type.value if isinstance(operation_type, OperationType) else str(operation_type)
        filename = f"{source.stem}_{op_name}_{unique_timestamp()}.{self.config.output_extension}"
        return str(source.parent / filename)

    def plan_chain(
        self,
        input_path: PathLike,
        output_path: Optional[PathLike],
        descriptors: Sequence[OperationDescriptor]
    ) -> List[ChainLink]:
        """Folds the operations into (input, output) links; each input is the previous output."""
        last_index = len(descriptors) - 1

        def step(links: List[ChainLink], indexed) -> List[ChainLink]:
            index, descriptor = indexed
            link_input = links[-1].output_path if links else str(input_path)
            if index == last_index and output_path:
                link_output = str(output_path)
            else:
                link_output = descriptor.output_file or self.generate_output_path(link_input, descriptor.type)
            return links + [ChainLink(
                operation_id=descriptor.id,
                input_path=link_input,
                output_path=link_output
            )]

        return reduce(step, enumerate(descriptors), [])

    async def execute_one(
        self,
        descriptor: OperationDescriptor,
        input_override: Optional[PathLike] = None,
        output_override: Optional[PathLike] = None
    ) -> str:
        """Runs one operation to a terminal status. Returns the output path or raises."""
        input_file = str(input_override) if input_override else descriptor.input_file
        if not input_file:
            self._fail(descriptor, "No input file for operation")
            raise OperationValidationError(descriptor.type.value, "no input file")

        output_file = str(output_override) if output_override else (
            descriptor.output_file or self.generate_output_path(input_file, descriptor.type)
        )

        descriptor.transition_to(OperationStatus.PROCESSING)
        descriptor.input_file = input_file
        descriptor.output_file = output_file
        self.registry.register(descriptor)
        self.event_bus.publish(OperationStarted(operation=descriptor))
        self.logger.info(f"Operation {descriptor.id} ({descriptor.type.value}): {input_file} -> {output_file}")

        try:
            params = descriptor.typed_parameters()
            expected_duration = await self._expected_duration(descriptor.type, params, input_file)
            await self.ffmpeg_adapter.run(
                descriptor.type,
                params,
                input_file,
                output_file,
                expected_duration=expected_duration,
                on_progress=lambda percent: self._on_progress(descriptor, percent)
            )
        except (AiveError, OSError) as e:
            self._fail(descriptor, str(e))
            raise

        descriptor.transition_to(OperationStatus.COMPLETED)
        descriptor.set_progress(100)
        self.registry.register(descriptor)
        video_info = await self._probe_quietly(output_file)
        self.event_bus.publish(OperationCompleted(operation=descriptor, output_path=output_file, video_info=video_info))
        self.logger.info(f"Operation {descriptor.id} completed: {output_file}")
        return output_file

    async def execute_sequence(
        self,
        input_path: PathLike,
        output_path: Optional[PathLike],
        descriptors: Sequence[OperationDescriptor]
    ) -> ExecutionResult:
        """
        Runs operations strictly in order, chaining outputs to inputs.

        Operation failures short-circuit into an unsuccessful result;
        intermediate files are left in place. Infrastructure errors propagate.
        """
        self.logger.info(
            f"Processing {input_path} -> {output_path or '<derived>'}: {[d.type.value for d in descriptors]}"
        )
        try:
            if not descriptors:
                raise OperationValidationError("sequence", "no operations supplied")
            if output_path:
                Path(output_path).parent.mkdir(parents=True, exist_ok=True)

            final_output = ""
            for descriptor, link in zip(descriptors, self.plan_chain(input_path, output_path, descriptors)):
                final_output = await self.execute_one(
                    descriptor,
                    input_override=link.input_path,
                    output_override=link.output_path
                )

            duration = await self._probe_duration(final_output)
            if self.config.replace_original:
                final_output = self._replace_original(str(input_path), final_output)
            return ExecutionResult(success=True, output_path=final_output, duration=duration)
        except (OperationError, OSError) as e:
            self.logger.error(f"Video processing error: {e}")
            return ExecutionResult(success=False, output_path="", duration=0.0, error=str(e))

    def get_operation(self, operation_id: str) -> Optional[OperationDescriptor]:
        return self.registry.get(operation_id)

    def progress_of(self, operation_id: str) -> int:
        return self.registry.progress_of(operation_id)

    def all_operations(self) -> List[OperationDescriptor]:
        return self.registry.all()

    def _on_progress(self, descriptor: OperationDescriptor, percent: int):
        progress = self.registry.update_progress(descriptor.id, percent)
        self.logger.debug(f"FFmpeg progress for operation {descriptor.id}: {progress}%")
        self.event_bus.publish(OperationProgressUpdated(operation=descriptor, progress_percent=progress))

    def _fail(self, descriptor: OperationDescriptor, message: str):
        descriptor.transition_to(OperationStatus.ERROR)
        self.registry.register(descriptor)
        self.event_bus.publish(OperationFailed(operation=descriptor, error_message=message))
        self.logger.error(f"Operation {descriptor.id} failed: {message}")

    async def _expected_duration(self, operation_type: OperationType, params: OperationParameters, input_file: str) -> float:
        """Length of the output, used as the denominator for progress."""
        if isinstance(params, TrimParameters) and params.end_time is not None:
            return params.end_time - params.start_time
        if isinstance(params, CutParameters) and params.cut_start is not None and params.cut_end is not None:
            return params.cut_end - params.cut_start
        return await self._probe_duration(input_file)

    async def _probe_quietly(self, path: str) -> Optional[VideoInfo]:
        try:
            return await self.ffprobe_adapter.get_video_info(path)
        except ProbeError as e:
            self.logger.warning(f"Failed to get video info for {path}: {e}")
            return None

    async def _probe_duration(self, path: str) -> float:
        info = await self._probe_quietly(path)
        return info.duration if info else 0.0

    def _replace_original(self, original_path: str, processed_path: str) -> str:
        """Swaps the processed file into the original's place; returns the path now holding it."""
        original = Path(original_path)
        processed = Path(processed_path)
        if original == processed:
            return processed_path
        if not original.exists() or not processed.exists():
            self.logger.warning(f"Skipping replace: {original} or {processed} does not exist")
            return processed_path

        backup = original.with_name(f"{original.stem}_old{original.suffix}")
        try:
            os.replace(original, backup)
            os.replace(processed, original)
            backup.unlink()
        except OSError as e:
            self.logger.error(f"Error replacing {original} with {processed}: {e}")
            if backup.exists() and not original.exists():
                os.replace(backup, original)
            return processed_path if processed.exists() else original_path
        self.logger.info(f"Processed video now available at {original}")
        return original_path
