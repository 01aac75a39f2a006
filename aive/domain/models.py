import uuid
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Type, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from aive.domain.errors import InvalidStatusTransition, OperationValidationError


def generate_id() -> str:
    return uuid.uuid4().hex


class OperationType(str, Enum):
    TRIM = "trim"
    CUT = "cut"
    RESIZE = "resize"
    OVERLAY = "overlay"
    AUDIO = "audio"


class OperationStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_STATUSES: FrozenSet[OperationStatus] = frozenset({OperationStatus.COMPLETED, OperationStatus.ERROR})

# Legal forward moves; terminal states have none.
_TRANSITIONS: Dict[OperationStatus, FrozenSet[OperationStatus]] = {
    OperationStatus.PENDING: frozenset({OperationStatus.PROCESSING, OperationStatus.ERROR}),
    OperationStatus.PROCESSING: frozenset({OperationStatus.COMPLETED, OperationStatus.ERROR}),
    OperationStatus.COMPLETED: frozenset(),
    OperationStatus.ERROR: frozenset(),
}


class _WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(populate_by_name=True)


class TrimParameters(_WireModel):
    start_time: float = Field(default=0.0, ge=0, alias="startTime")
    end_time: Optional[float] = Field(default=None, alias="endTime")

    @model_validator(mode="after")
    def check_range(self) -> "TrimParameters":
        if self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError(f"endTime ({self.end_time}) must be greater than startTime ({self.start_time})")
        return self


class CutParameters(_WireModel):
    cut_start: Optional[float] = Field(default=None, ge=0, alias="cutStart")
    cut_end: Optional[float] = Field(default=None, alias="cutEnd")

    @model_validator(mode="after")
    def check_range(self) -> "CutParameters":
        if self.cut_start is not None and self.cut_end is not None and self.cut_end <= self.cut_start:
            raise ValueError(f"cutEnd ({self.cut_end}) must be greater than cutStart ({self.cut_start})")
        return self


class ResizeParameters(_WireModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class OverlayParameters(_WireModel):
    overlay_path: str = Field(min_length=1, alias="overlayPath")
    x: int = 0
    y: int = 0


class AudioParameters(_WireModel):
    volume: Optional[float] = Field(default=None, ge=0)
    audio_path: Optional[str] = Field(default=None, alias="audioPath")


OperationParameters = Union[TrimParameters, CutParameters, ResizeParameters, OverlayParameters, AudioParameters]

PARAMETER_MODELS: Dict[OperationType, Type[_WireModel]] = {
    OperationType.TRIM: TrimParameters,
    OperationType.CUT: CutParameters,
    OperationType.RESIZE: ResizeParameters,
    OperationType.OVERLAY: OverlayParameters,
    OperationType.AUDIO: AudioParameters,
}


class OperationDescriptor(_WireModel):
    id: str = Field(default_factory=generate_id, frozen=True)
    type: OperationType
    parameters: Dict[str, Any] = Field(default_factory=dict)
    input_file: str = Field(default="", alias="inputFile")
    output_file: str = Field(default="", alias="outputFile")
    status: OperationStatus = OperationStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def typed_parameters(self) -> OperationParameters:
        """Validates the open parameter map against the record for this type."""
        model = PARAMETER_MODELS[self.type]
        # Models often emit explicit nulls for optional fields
        data = {k: v for k, v in self.parameters.items() if v is not None}
        try:
            return model.model_validate(data)
        except ValidationError as e:
            reasons = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'parameters'}: {err['msg']}" for err in e.errors()
            )
            raise OperationValidationError(self.type.value, reasons) from e

    def transition_to(self, status: OperationStatus):
        if status not in _TRANSITIONS[self.status]:
            raise InvalidStatusTransition(self.id, self.status.value, status.value)
        self.status = status

    def set_progress(self, value: float):
        self.progress = max(0, min(100, int(round(value))))


class ExecutionResult(_WireModel):
    success: bool
    output_path: str = Field(default="", alias="outputPath")
    duration: float = 0.0
    error: Optional[str] = None


class MaterializedArtifact(_WireModel):
    timestamp_key: str = Field(alias="timestampKey")
    buffer: Optional[str] = None
    path: Optional[str] = None
    large_file: Optional[bool] = Field(default=None, alias="largeFile")

    @model_validator(mode="after")
    def check_exactly_one(self) -> "MaterializedArtifact":
        if (self.buffer is None) == (self.path is None):
            raise ValueError("Exactly one of buffer or path must be set")
        if self.large_file and self.path is None:
            raise ValueError("largeFile artifacts are referenced by path")
        return self

    @property
    def is_inline(self) -> bool:
        return self.buffer is not None


class VideoInfo(BaseModel):
    duration: float = 0.0
    width: int = 0
    height: int = 0
    fps: float = 0.0
    size: int = 0
    format: str = ""


class ChainLink(_WireModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    operation_id: str = Field(alias="operationId")
    input_path: str = Field(alias="inputPath")
    output_path: str = Field(alias="outputPath")


class InterpretedCommand(BaseModel):
    command: str
    operation: OperationDescriptor
    confidence: float = Field(ge=0.0, le=1.0)


class BackendStatus(BaseModel):
    status: str
    model: str
    available: bool
    error: Optional[str] = None


class ResponseOutcome(str, Enum):
    COMPLETED = "completed"
    INTERPRETED = "interpreted"
    EXECUTION_FAILED = "execution_failed"
    FAILED = "failed"


class InstructionResponse(_WireModel):
    success: bool
    message: str
    command: str
    confidence: Optional[float] = None
    operation: Optional[OperationDescriptor] = None
    execution_result: Optional[ExecutionResult] = Field(default=None, alias="executionResult")
    artifact: Optional[MaterializedArtifact] = None
    error: Optional[str] = None

    @property
    def outcome(self) -> ResponseOutcome:
        if not self.success:
            return ResponseOutcome.FAILED
        if self.execution_result is None:
            return ResponseOutcome.INTERPRETED
        if self.execution_result.success:
            return ResponseOutcome.COMPLETED
        return ResponseOutcome.EXECUTION_FAILED

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
