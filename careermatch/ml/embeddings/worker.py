"""
Embedding worker thread.

Owns the embedding model and processes requests from its inbox one at
a time, in arrival order. Results are reported through a callback,
tagged with the request's correlation id.
"""

import queue
import threading
from typing import Callable, Optional

from careermatch.ml.embeddings.embedding_model import (
    EmbeddingModel,
    compute_text_hash,
    truncate_text,
)
from careermatch.ml.embeddings.messages import (
    BatchItemResult,
    BatchResultResponse,
    EmbedBatchRequest,
    EmbeddingResultResponse,
    EmbedTextRequest,
    ErrorCode,
    ErrorResponse,
    InitModelRequest,
    ModelProgressResponse,
    ModelReadyResponse,
    WorkerRequest,
    WorkerResponse,
)
from careermatch.utils.constants import ProgressStage
from careermatch.utils.logger import get_logger

logger = get_logger(__name__)

ResponseHandler = Callable[[WorkerResponse], None]

_STOP = object()


class EmbeddingWorker(threading.Thread):
    """Daemon thread running model initialization and inference."""

    def __init__(
        self,
        model: EmbeddingModel,
        respond: ResponseHandler,
        max_tokens: Optional[int] = None,
        chars_per_token: Optional[int] = None,
    ):
        super().__init__(name="embedding-worker", daemon=True)
        self._model = model
        self._respond = respond
        self._max_tokens = max_tokens
        self._chars_per_token = chars_per_token
        self._inbox: queue.Queue = queue.Queue()
        self._stopping = threading.Event()

    def submit(self, request: WorkerRequest) -> None:
        self._inbox.put(request)

    def stop(self) -> None:
        """Drop queued requests and exit after the current one."""
        self._stopping.set()
        self._inbox.put(_STOP)

    def run(self) -> None:
        logger.debug("Embedding worker started")
        while True:
            request = self._inbox.get()
            if request is _STOP or self._stopping.is_set():
                break
            self._handle(request)
        logger.debug("Embedding worker stopped")

    # -------------------------------------------------------------------------
    # Request handling
    # -------------------------------------------------------------------------

    def _handle(self, request: WorkerRequest) -> None:
        if isinstance(request, InitModelRequest):
            self._initialize(request)
        elif isinstance(request, EmbedTextRequest):
            self._embed_text(request)
        elif isinstance(request, EmbedBatchRequest):
            self._embed_batch(request)
        else:
            request_id = getattr(request, "id", "")
            self._respond(
                ErrorResponse(
                    id=request_id,
                    code=ErrorCode.UNKNOWN_REQUEST,
                    message=f"Unknown request type: {type(request).__name__}",
                )
            )

    def _initialize(self, request: InitModelRequest) -> None:
        if self._model.is_loaded:
            self._respond(ModelReadyResponse(id=request.id))
            return

        def progress(stage: ProgressStage, percent: float) -> None:
            self._respond(
                ModelProgressResponse(id=request.id, stage=stage, progress=percent)
            )

        try:
            self._model.load(on_progress=progress)
        except Exception as e:
            logger.error(f"Embedding model failed to load: {e}")
            self._respond(
                ErrorResponse(id=request.id, code=ErrorCode.INIT_FAILED, message=str(e))
            )
            return

        self._respond(ModelReadyResponse(id=request.id))

    def _encode(self, text: str):
        truncated = truncate_text(text, self._max_tokens, self._chars_per_token)
        return self._model.encode(truncated), compute_text_hash(text)

    def _embed_text(self, request: EmbedTextRequest) -> None:
        try:
            vector, text_hash = self._encode(request.text)
        except Exception as e:
            logger.warning(f"Embedding request {request.id} failed: {e}")
            self._respond(
                ErrorResponse(id=request.id, code=ErrorCode.EMBED_FAILED, message=str(e))
            )
            return

        self._respond(
            EmbeddingResultResponse(id=request.id, vector=vector, text_hash=text_hash)
        )

    def _embed_batch(self, request: EmbedBatchRequest) -> None:
        results = []
        for item in request.items:
            try:
                vector, text_hash = self._encode(item.text)
            except Exception as e:
                logger.warning(
                    f"Batch item {item.entity_type}:{item.entity_id} failed: {e}"
                )
                results.append(
                    BatchItemResult(
                        entity_type=item.entity_type,
                        entity_id=item.entity_id,
                        error=str(e),
                    )
                )
                continue
            results.append(
                BatchItemResult(
                    entity_type=item.entity_type,
                    entity_id=item.entity_id,
                    vector=vector,
                    text_hash=text_hash,
                )
            )

        self._respond(BatchResultResponse(id=request.id, results=tuple(results)))
