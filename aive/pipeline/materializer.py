import asyncio
import base64
import logging
import os
import time
from pathlib import Path
from typing import Optional, Union
from aive.config.models import DEFAULT_INLINE_THRESHOLD_BYTES
from aive.domain.models import MaterializedArtifact

logger = logging.getLogger(__name__)


def generate_timestamp_key() -> str:
    # Not collision-checked; two calls in the same nanosecond share a key
    return str(time.time_ns())


class ResultMaterializer:
    """Decides whether an artifact travels inline (base64) or by path."""

    def __init__(self, inline_threshold_bytes: int = DEFAULT_INLINE_THRESHOLD_BYTES):
        self.inline_threshold_bytes = inline_threshold_bytes

    def is_oversize(self, size: int) -> bool:
        """Exactly the threshold still goes inline."""
        return size > self.inline_threshold_bytes

    async def materialize(self, path: Union[str, Path], size: Optional[int] = None) -> MaterializedArtifact:
        """
        Same decision for uploads (size known up front) and pipeline outputs
        (size read from disk).
        """
        path = str(path)
        if size is None:
            size = (await asyncio.to_thread(os.stat, path)).st_size
        key = generate_timestamp_key()

        if self.is_oversize(size):
            logger.info(f"Large file ({size / 1024 / 1024:.1f} MiB), returning path only: {path}")
            return MaterializedArtifact(timestamp_key=key, path=path, large_file=True)

        data = await asyncio.to_thread(Path(path).read_bytes)
        logger.debug(f"Inlining {len(data)} bytes from {path}")
        return MaterializedArtifact(timestamp_key=key, buffer=base64.b64encode(data).decode("ascii"))
