import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
from aive.domain.models import (
    ExecutionResult, InstructionResponse, MaterializedArtifact, OperationDescriptor
)
from aive.infrastructure.registry import OperationRegistry
from aive.pipeline.executor import OperationExecutor
from aive.pipeline.interpreter import CommandInterpreter
from aive.pipeline.materializer import ResultMaterializer

logger = logging.getLogger(__name__)

OperationInput = Union[OperationDescriptor, Mapping[str, Any]]


def resolve_input_file(context: Optional[Mapping[str, Any]]) -> Optional[str]:
    """
    First concrete media path named by the context: an explicit inputFile,
    then the first video track with a path, then the first clip of a video track.
    """
    if not context:
        return None

    for key in ("inputFile", "input_file"):
        value = context.get(key)
        if isinstance(value, str) and value:
            return value

    for track in context.get("videoTracks") or []:
        if isinstance(track, Mapping):
            path = track.get("path") or track.get("filePath")
            if isinstance(path, str) and path:
                return path

    for track in context.get("tracks") or []:
        if not isinstance(track, Mapping) or track.get("type", "video") != "video":
            continue
        for clip in track.get("clips") or []:
            if isinstance(clip, Mapping) and isinstance(clip.get("path"), str) and clip["path"]:
                return clip["path"]
    return None


class PipelineCoordinator:
    """Single entry point: instruction in, fully materialized response out."""

    def __init__(
        self,
        interpreter: CommandInterpreter,
        executor: OperationExecutor,
        materializer: ResultMaterializer,
        registry: OperationRegistry
    ):
        self.interpreter = interpreter
        self.executor = executor
        self.materializer = materializer
        self.registry = registry

    async def handle_instruction(self, message: str, context: Optional[Dict[str, Any]] = None) -> InstructionResponse:
        try:
            interpreted = await self.interpreter.interpret(message, context)
            operation = interpreted.operation

            input_file = resolve_input_file(context)
            if not input_file:
                return InstructionResponse(
                    success=True,
                    message="Operation interpreted, but no video file found to process",
                    command=interpreted.command,
                    confidence=interpreted.confidence,
                    operation=operation
                )

            operation.input_file = input_file
            output_path = self.executor.generate_output_path(input_file, operation.type)
            logger.info(f"Executing {operation.type.value} on {input_file}")
            result = await self.executor.execute_sequence(input_file, output_path, [operation])

            if not result.success:
                logger.error(f"FFmpeg processing failed: {result.error}")
                return InstructionResponse(
                    success=True,
                    message="Command parsed but processing failed",
                    command=interpreted.command,
                    confidence=interpreted.confidence,
                    operation=operation,
                    execution_result=result,
                    error=f"Operation interpreted, but processing failed: {result.error}"
                )

            try:
                artifact = await self.materializer.materialize(result.output_path)
            except OSError as e:
                logger.error(f"Could not materialize {result.output_path}: {e}")
                failed = result.model_copy(update={"success": False, "error": f"Output could not be read: {e}"})
                return InstructionResponse(
                    success=True,
                    message="Command executed but the result could not be read",
                    command=interpreted.command,
                    confidence=interpreted.confidence,
                    operation=operation,
                    execution_result=failed,
                    error=f"Operation executed, but the result could not be read: {e}"
                )

            return InstructionResponse(
                success=True,
                message="Command processed and executed successfully",
                command=interpreted.command,
                confidence=interpreted.confidence,
                operation=operation,
                execution_result=result,
                artifact=artifact
            )
        except Exception as e:
            logger.exception(f"Instruction failed: {message!r}")
            return InstructionResponse(
                success=False,
                message="Failed to process instruction",
                command=message,
                error=str(e) or type(e).__name__
            )

    async def handle_upload(self, stored_path: Union[str, Path], size: Optional[int] = None) -> MaterializedArtifact:
        """Materializes an already-stored upload with the same threshold as pipeline outputs."""
        return await self.materializer.materialize(stored_path, size=size)

    async def process(
        self,
        input_path: Union[str, Path],
        output_path: Optional[Union[str, Path]],
        operations: Iterable[OperationInput]
    ) -> ExecutionResult:
        """Runs an explicit sequence of operations, bypassing interpretation."""
        descriptors = [self._to_descriptor(op) for op in operations]
        return await self.executor.execute_sequence(input_path, output_path, descriptors)

    async def execute_command(
        self,
        operation_type: Any,
        parameters: Optional[Dict[str, Any]],
        input_file: Union[str, Path]
    ) -> ExecutionResult:
        operation = self.interpreter.create_operation(operation_type, parameters)
        operation.input_file = str(input_file)
        return await self.executor.execute_sequence(input_file, None, [operation])

    def progress_of(self, operation_id: str) -> int:
        return self.registry.progress_of(operation_id)

    def operations(self) -> List[OperationDescriptor]:
        return self.registry.all()

    @staticmethod
    def _to_descriptor(operation: OperationInput) -> OperationDescriptor:
        if isinstance(operation, OperationDescriptor):
            return operation
        data = dict(operation)
        if isinstance(data.get("type"), str):
            data["type"] = data["type"].lower()
        return OperationDescriptor.model_validate(data)
