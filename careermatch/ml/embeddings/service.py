"""
Async client for the embedding worker.

Callers await results on their own event loop while inference runs on
the worker thread. Responses are routed back to the awaiting request
by correlation id.
"""

import asyncio
import threading
from dataclasses import dataclass
from typing import Optional, Sequence

from careermatch.ml.embeddings.embedding_model import EmbeddingModel, get_embedding_model
from careermatch.ml.embeddings.messages import (
    BatchItemResult,
    BatchResultResponse,
    EmbedBatchRequest,
    EmbeddingResult,
    EmbeddingResultResponse,
    EmbedItem,
    EmbedTextRequest,
    ErrorResponse,
    InitModelRequest,
    ModelProgressResponse,
    WorkerRequest,
    WorkerResponse,
    generate_request_id,
)
from careermatch.ml.embeddings.provider import EmbeddingProvider, ProgressListener
from careermatch.ml.embeddings.worker import EmbeddingWorker
from careermatch.utils.exceptions import EmbeddingError, InitializationError
from careermatch.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class _PendingRequest:
    future: asyncio.Future
    loop: asyncio.AbstractEventLoop
    on_progress: Optional[ProgressListener] = None


class EmbeddingService(EmbeddingProvider):
    """
    Embedding provider backed by a local model on a worker thread.

    Initialization is memoized: concurrent ``initialize`` calls share a
    single in-flight attempt. A failed attempt is forgotten so a later
    call can retry.
    """

    def __init__(
        self,
        model: Optional[EmbeddingModel] = None,
        max_tokens: Optional[int] = None,
        chars_per_token: Optional[int] = None,
        join_timeout: float = 5.0,
    ):
        """
        Initialize the service.

        Args:
            model: Model handed to the worker. Defaults to the shared model singleton.
            max_tokens: Token budget for truncation. Defaults to config setting.
            chars_per_token: Characters per token estimate. Defaults to config setting.
            join_timeout: Seconds to wait for the worker thread on terminate.
        """
        self._model = model if model is not None else get_embedding_model()
        self._max_tokens = max_tokens
        self._chars_per_token = chars_per_token
        self._join_timeout = join_timeout

        self._worker: Optional[EmbeddingWorker] = None
        self._lock = threading.Lock()
        self._pending: dict[str, _PendingRequest] = {}

        self._ready = False
        self._init_task: Optional[asyncio.Task] = None
        self._progress_listeners: list[ProgressListener] = []

    @property
    def is_ready(self) -> bool:
        return self._ready

    # -------------------------------------------------------------------------
    # Worker plumbing
    # -------------------------------------------------------------------------

    def _ensure_worker(self) -> EmbeddingWorker:
        with self._lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = EmbeddingWorker(
                    self._model,
                    self._dispatch,
                    max_tokens=self._max_tokens,
                    chars_per_token=self._chars_per_token,
                )
                self._worker.start()
            return self._worker

    def _dispatch(self, response: WorkerResponse) -> None:
        """Route a worker response to its request. Runs on the worker thread."""
        with self._lock:
            if isinstance(response, ModelProgressResponse):
                pending = self._pending.get(response.id)
            else:
                pending = self._pending.pop(response.id, None)

        if pending is None:
            logger.debug(f"Dropping response for unknown request {response.id}")
            return

        try:
            if isinstance(response, ModelProgressResponse):
                if pending.on_progress is not None:
                    pending.loop.call_soon_threadsafe(pending.on_progress, response)
            else:
                pending.loop.call_soon_threadsafe(_resolve, pending.future, response)
        except RuntimeError:
            # The caller's event loop has already closed
            logger.debug(f"Event loop closed before response {response.id}")

    async def _request(
        self,
        request: WorkerRequest,
        on_progress: Optional[ProgressListener] = None,
    ) -> WorkerResponse:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        with self._lock:
            self._pending[request.id] = _PendingRequest(future, loop, on_progress)
        self._ensure_worker().submit(request)
        return await future

    # -------------------------------------------------------------------------
    # Initialization
    # -------------------------------------------------------------------------

    async def initialize(self, on_progress: Optional[ProgressListener] = None) -> None:
        """
        Load the embedding model on the worker thread.

        Args:
            on_progress: Receives progress events for this call. Purely
                observational; errors raised by it are logged and ignored.

        Raises:
            InitializationError: If the model failed to load.
        """
        if self._ready:
            return

        if on_progress is not None:
            self._progress_listeners.append(on_progress)
        try:
            if self._init_task is None or self._init_task.done():
                self._init_task = asyncio.ensure_future(self._run_initialize())
            await asyncio.shield(self._init_task)
        finally:
            if on_progress is not None:
                self._progress_listeners.remove(on_progress)

    async def _run_initialize(self) -> None:
        request = InitModelRequest(id=generate_request_id())
        logger.info("Initializing embedding model")
        try:
            response = await self._request(request, on_progress=self._emit_progress)
        except EmbeddingError as e:
            self._init_task = None
            raise InitializationError(str(e)) from e

        if isinstance(response, ErrorResponse):
            self._init_task = None
            raise InitializationError(response.message)

        self._ready = True
        logger.info("Embedding model ready")

    def _emit_progress(self, event: ModelProgressResponse) -> None:
        for listener in list(self._progress_listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Progress listener failed: {e}")

    # -------------------------------------------------------------------------
    # Embedding
    # -------------------------------------------------------------------------

    async def embed(self, text: str) -> EmbeddingResult:
        """
        Embed a single text, initializing the model first if needed.

        Args:
            text: Source text. Long text is truncated before inference;
                the hash always covers the full text.

        Returns:
            The normalized vector and the source text hash.

        Raises:
            InitializationError: If the model could not be loaded.
            EmbeddingError: If inference failed for this text.
        """
        await self.initialize()
        request = EmbedTextRequest(id=generate_request_id(), text=text)
        response = await self._request(request)

        if isinstance(response, ErrorResponse):
            raise EmbeddingError(
                response.message, code=response.code.value, request_id=response.id
            )
        if not isinstance(response, EmbeddingResultResponse):
            raise EmbeddingError(
                f"Unexpected response {type(response).__name__}", request_id=request.id
            )
        return EmbeddingResult(vector=response.vector, text_hash=response.text_hash)

    async def embed_batch(self, items: Sequence[EmbedItem]) -> list[BatchItemResult]:
        """
        Embed several texts in one worker request.

        Items are processed one at a time inside the worker. A failed item
        is reported in its result and does not affect the others.

        Raises:
            InitializationError: If the model could not be loaded.
        """
        if not items:
            return []

        await self.initialize()
        request = EmbedBatchRequest(id=generate_request_id(), items=tuple(items))
        response = await self._request(request)

        if isinstance(response, BatchResultResponse):
            return list(response.results)

        message = (
            response.message
            if isinstance(response, ErrorResponse)
            else f"Unexpected response {type(response).__name__}"
        )
        logger.warning(f"Batch request {request.id} failed: {message}")
        return [
            BatchItemResult(
                entity_type=item.entity_type, entity_id=item.entity_id, error=message
            )
            for item in items
        ]

    # -------------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------------

    def terminate(self) -> None:
        """Stop the worker and fail every request still waiting on it."""
        with self._lock:
            worker = self._worker
            self._worker = None
            pending = list(self._pending.items())
            self._pending.clear()

        self._ready = False
        self._init_task = None

        if worker is not None:
            worker.stop()
            worker.join(timeout=self._join_timeout)

        for request_id, entry in pending:
            error = EmbeddingError(
                "Embedding service terminated", code="TERMINATED", request_id=request_id
            )
            try:
                entry.loop.call_soon_threadsafe(_reject, entry.future, error)
            except RuntimeError:
                logger.debug(f"Event loop closed before rejecting {request_id}")

        logger.info("Embedding service terminated")


def _resolve(future: asyncio.Future, response: WorkerResponse) -> None:
    if not future.done():
        future.set_result(response)


def _reject(future: asyncio.Future, error: Exception) -> None:
    if not future.done():
        future.set_exception(error)


# Singleton instance
_embedding_service: Optional[EmbeddingService] = None


def get_embedding_service() -> EmbeddingService:
    """Get the embedding service singleton instance."""
    global _embedding_service
    if _embedding_service is None:
        _embedding_service = EmbeddingService()
    return _embedding_service
