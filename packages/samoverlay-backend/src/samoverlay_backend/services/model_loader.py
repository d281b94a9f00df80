"""One-shot background model loading with a readiness future."""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import Future
from typing import Protocol

from samoverlay_backend.errors import ModelNotLoadedError

logger = logging.getLogger(__name__)


class LoadableModel(Protocol):
    def load_model(self) -> None: ...


class ModelLoader:
    """Loads a model once in a worker thread and publishes the outcome.

    Inference calls made before loading completes, or after it failed, get
    ModelNotLoadedError from ``require_ready``; ``wait_ready`` awaits the outcome.
    """

    def __init__(self, model: LoadableModel) -> None:
        self._model = model
        self._ready: Future[bool] = Future()
        self._task: asyncio.Task | None = None
        self.initialization_time: float | None = None
        self.error: BaseException | None = None

    def start(self) -> asyncio.Task:
        """Schedule loading on the running event loop. Later calls return the same task."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._load())
        return self._task

    async def _load(self) -> None:
        start_time = time.perf_counter()
        try:
            await asyncio.to_thread(self._model.load_model)
        except Exception as e:
            logger.exception(f"Failed to initialize models: {e}")
            self.error = e
            self.initialization_time = None
            self._ready.set_result(False)
            return

        self.initialization_time = time.perf_counter() - start_time
        logger.info(f"Initialized models in {self.initialization_time:.4f} seconds")
        self._ready.set_result(True)

    def mark_ready(self) -> None:
        """Declare an already loaded model ready without going through ``start``."""
        if not self._ready.done():
            self._ready.set_result(True)

    @property
    def is_ready(self) -> bool:
        return self._ready.done() and self._ready.result()

    @property
    def failed(self) -> bool:
        return self._ready.done() and not self._ready.result()

    def require_ready(self) -> None:
        """Raise ModelNotLoadedError unless loading completed successfully."""
        if self.is_ready:
            return
        if self.failed:
            raise ModelNotLoadedError(f"SAM2 model failed to load: {self.error}")
        raise ModelNotLoadedError("SAM2 model is still loading")

    async def wait_ready(self) -> None:
        """Wait for loading to finish.

        Raises:
            ModelNotLoadedError: If loading failed.
        """
        if not await asyncio.shield(asyncio.wrap_future(self._ready)):
            raise ModelNotLoadedError(f"SAM2 model failed to load: {self.error}")
