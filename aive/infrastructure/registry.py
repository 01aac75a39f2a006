"""
In-memory operation registry.

Holds every OperationDescriptor executed in this process, keyed by id, so
progress can be polled until shutdown. Append-only; there is no eviction.
"""

from typing import Dict, List, Optional
from aive.domain.models import OperationDescriptor
from aive.domain.errors import OperationNotFoundError


class OperationRegistry:
    """
    Process-wide map of operation id -> descriptor.

    Instances are owned explicitly and injected into the executor and
    coordinator; tests build their own.
    """

    def __init__(self):
        self._operations: Dict[str, OperationDescriptor] = {}

    def register(self, descriptor: OperationDescriptor) -> None:
        """
        Insert or overwrite a descriptor by id.

        Callers should carry the same id forward through status updates.
        """
        self._operations[descriptor.id] = descriptor

    def get(self, operation_id: str) -> Optional[OperationDescriptor]:
        return self._operations.get(operation_id)

    def get_or_raise(self, operation_id: str) -> OperationDescriptor:
        """
        Retrieve a descriptor by id.

        Raises:
            OperationNotFoundError: If the id was never registered
        """
        descriptor = self.get(operation_id)
        if descriptor is None:
            raise OperationNotFoundError(operation_id)
        return descriptor

    def progress_of(self, operation_id: str) -> int:
        """Integer progress for an operation, 0 if unknown."""
        descriptor = self.get(operation_id)
        return descriptor.progress if descriptor else 0

    def update_progress(self, operation_id: str, value: float) -> int:
        descriptor = self.get(operation_id)
        if descriptor is None:
            return 0
        descriptor.set_progress(value)
        return descriptor.progress

    def all(self) -> List[OperationDescriptor]:
        return list(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)

    def __contains__(self, operation_id: object) -> bool:
        return operation_id in self._operations
