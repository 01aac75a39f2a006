import json
import logging
from typing import Any, Dict, List, Optional
from aive.domain.errors import InfrastructureError
from aive.domain.models import (
    BackendStatus, InterpretedCommand, OperationDescriptor, OperationType
)
from aive.infrastructure.llm import LanguageModelClient

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8
FALLBACK_TRIM = {"startTime": 0, "endTime": 10}
FALLBACK_RESIZE = {"width": 1280, "height": 720}

SYSTEM_PROMPT = """You are an AI video editing assistant. Your job is to translate natural language commands into FFmpeg operations.

Available operations:
- TRIM: Keep a time range of the video. Parameters: startTime, endTime (seconds)
- CUT: Remove a segment from the video. Parameters: cutStart, cutEnd (seconds)
- RESIZE: Change video dimensions. Parameters: width, height (pixels)
- OVERLAY: Add an image or video overlay. Parameters: overlayPath, x, y (pixels, optional)
- AUDIO: Adjust audio levels or add audio. Parameters: volume (multiplier), audioPath (optional)

Respond with JSON in this format:
{
  "operation": "TRIM",
  "parameters": {
    "startTime": 10,
    "endTime": 30
  },
  "description": "Trimmed video from 10s to 30s"
}

Only respond with valid JSON."""

AVAILABLE_COMMANDS = [
    "Trim video to specific time range",
    "Cut segment from video",
    "Resize video dimensions",
    "Add image overlay",
    "Adjust audio levels",
    "Add audio track",
]


class CommandInterpreter:
    """Turns one natural-language instruction into one operation descriptor."""

    def __init__(self, llm: LanguageModelClient, default_confidence: float = DEFAULT_CONFIDENCE):
        self.llm = llm
        self.default_confidence = default_confidence

    async def interpret(self, message: str, context: Optional[Dict[str, Any]] = None) -> InterpretedCommand:
        """
        Always yields a usable descriptor. Malformed model output falls back to
        keyword matching; only an unreachable backend raises.
        """
        prompt = self.build_prompt(message, context)
        raw = await self.llm.chat(SYSTEM_PROMPT, prompt)
        operation = self.parse_response(raw, message)
        return InterpretedCommand(command=message, operation=operation, confidence=self.default_confidence)

    def build_prompt(self, message: str, context: Optional[Dict[str, Any]] = None) -> str:
        prompt = f'User command: "{message}"'
        if context:
            prompt += f"\n\nProject context: {json.dumps(context, default=str)}"
        prompt += "\n\nGenerate the appropriate FFmpeg operation:"
        return prompt

    def parse_response(self, response: str, original_command: str) -> OperationDescriptor:
        try:
            # Models like to wrap the object in prose or code fences
            start = response.find("{")
            end = response.rfind("}")
            if start == -1 or end <= start:
                raise ValueError("No JSON found in response")
            parsed = json.loads(response[start:end + 1])
            if not isinstance(parsed, dict):
                raise ValueError("Response JSON is not an object")

            parameters = parsed.get("parameters")
            if not isinstance(parameters, dict):
                parameters = {}
            operation = OperationDescriptor(
                type=self.map_operation_type(parsed.get("operation")),
                parameters=parameters,
            )
            if parsed.get("description"):
                logger.info(f"Model description: {parsed['description']}")
            return operation
        except (ValueError, TypeError) as e:
            logger.info(f"JSON parsing failed, using fallback: {e}")
            return self.fallback_parse(original_command)

    @staticmethod
    def map_operation_type(operation: Any) -> OperationType:
        """Case-insensitive lookup into the closed set; anything else is a trim."""
        if isinstance(operation, str):
            try:
                return OperationType(operation.strip().lower())
            except ValueError:
                pass
        return OperationType.TRIM

    @staticmethod
    def fallback_parse(command: str) -> OperationDescriptor:
        lower = command.lower()
        if "trim" in lower or "cut" in lower:
            return OperationDescriptor(type=OperationType.TRIM, parameters=dict(FALLBACK_TRIM))
        if "resize" in lower:
            return OperationDescriptor(type=OperationType.RESIZE, parameters=dict(FALLBACK_RESIZE))
        return OperationDescriptor(type=OperationType.TRIM, parameters=dict(FALLBACK_TRIM))

    def create_operation(self, operation_type: Any, parameters: Optional[Dict[str, Any]] = None) -> OperationDescriptor:
        """Builds a pending descriptor directly, without asking the model."""
        if not isinstance(operation_type, OperationType):
            operation_type = OperationType(str(operation_type).lower())
        return OperationDescriptor(type=operation_type, parameters=dict(parameters or {}))

    def available_commands(self) -> List[str]:
        return list(AVAILABLE_COMMANDS)

    async def status(self) -> BackendStatus:
        model = self.llm.model
        try:
            models = await self.llm.list_models()
        except InfrastructureError as e:
            logger.error(f"Error checking model status: {e}")
            return BackendStatus(status="error", model=model, available=False, error=str(e))

        if model in models:
            return BackendStatus(status="ready", model=model, available=True)
        return BackendStatus(
            status="model_not_found",
            model=model,
            available=False,
            error=f"Model {model} not found. Available models: {', '.join(models)}"
        )
