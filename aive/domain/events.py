from typing import Optional
from pydantic import BaseModel
from .models import OperationDescriptor, VideoInfo


class Event(BaseModel):
    """Base class for all domain events."""
    pass


class OperationEvent(Event):
    operation: OperationDescriptor


class OperationStarted(OperationEvent):
    pass


class OperationProgressUpdated(OperationEvent):
    progress_percent: int


class OperationCompleted(OperationEvent):
    output_path: str
    video_info: Optional[VideoInfo] = None


class OperationFailed(OperationEvent):
    error_message: str
