"""
Tests for careermatch.ml.embeddings: truncation, hashing, worker protocol
and the async embedding service.

The sentence-transformers model is replaced by a hashing stand-in, so nothing
is downloaded.
"""

import asyncio
import hashlib

import numpy as np
import pytest

from careermatch.ml.embeddings import embedding_model as embedding_model_module
from careermatch.ml.embeddings import (
    EmbeddingService,
    EmbeddingWorker,
    EmbedItem,
    ErrorCode,
    compute_text_hash,
    generate_request_id,
    truncate_text,
)
from careermatch.ml.embeddings.messages import (
    BatchResultResponse,
    EmbedBatchRequest,
    EmbeddingResultResponse,
    EmbedTextRequest,
    ErrorResponse,
    InitModelRequest,
    ModelProgressResponse,
    ModelReadyResponse,
)
from careermatch.utils.constants import EntityType, ProgressStage
from careermatch.utils.exceptions import EmbeddingError, InitializationError


# ── truncate_text / compute_text_hash ───────────────────────────────────────


class TestTruncateText:
    def test_short_text_unchanged(self):
        assert truncate_text("hello world", max_tokens=10, chars_per_token=3) == "hello world"

    def test_long_text_cut_to_budget(self):
        text = "x" * 100
        assert truncate_text(text, max_tokens=10, chars_per_token=3) == "x" * 30

    def test_exact_budget_unchanged(self):
        text = "y" * 30
        assert truncate_text(text, max_tokens=10, chars_per_token=3) == text

    def test_default_budget_from_settings(self):
        text = "z" * 2000
        assert len(truncate_text(text)) == 512 * 3


class TestComputeTextHash:
    def test_sha256_hex(self):
        assert compute_text_hash("abc") == hashlib.sha256(b"abc").hexdigest()

    def test_deterministic(self):
        assert compute_text_hash("same text") == compute_text_hash("same text")

    def test_different_text_different_hash(self):
        assert compute_text_hash("one") != compute_text_hash("two")


def test_request_ids_are_unique():
    ids = {generate_request_id() for _ in range(200)}
    assert len(ids) == 200


# ── EmbeddingWorker (handled synchronously) ─────────────────────────────────


class TestEmbeddingWorker:
    def make_worker(self, encoder):
        responses = []
        worker = EmbeddingWorker(encoder, responses.append, max_tokens=4, chars_per_token=3)
        return worker, responses

    def test_init_reports_progress_then_ready(self, make_encoder):
        worker, responses = self.make_worker(make_encoder())
        worker._handle(InitModelRequest(id="r1"))

        stages = [r.stage for r in responses if isinstance(r, ModelProgressResponse)]
        assert stages == [ProgressStage.DOWNLOAD, ProgressStage.LOAD, ProgressStage.READY]
        assert isinstance(responses[-1], ModelReadyResponse)
        assert all(r.id == "r1" for r in responses)

    def test_init_when_loaded_skips_progress(self, make_encoder):
        encoder = make_encoder()
        encoder.load()
        worker, responses = self.make_worker(encoder)
        worker._handle(InitModelRequest(id="r1"))
        assert responses == [ModelReadyResponse(id="r1")]

    def test_init_failure_reports_error(self, make_encoder):
        worker, responses = self.make_worker(make_encoder(fail_load=True))
        worker._handle(InitModelRequest(id="r1"))
        assert isinstance(responses[-1], ErrorResponse)
        assert responses[-1].code == ErrorCode.INIT_FAILED

    def test_embed_truncates_but_hashes_full_text(self, make_encoder):
        encoder = make_encoder()
        worker, responses = self.make_worker(encoder)
        text = "abcdefghijkl-and-more-text"
        worker._handle(EmbedTextRequest(id="r2", text=text))

        response = responses[-1]
        assert isinstance(response, EmbeddingResultResponse)
        assert response.text_hash == compute_text_hash(text)
        assert encoder.texts[-1] == text[:12]

    def test_embed_failure_reports_error(self, make_encoder):
        worker, responses = self.make_worker(make_encoder(fail_on="boom"))
        worker._handle(EmbedTextRequest(id="r3", text="boom"))
        assert responses[-1].code == ErrorCode.EMBED_FAILED
        assert responses[-1].id == "r3"

    def test_batch_items_fail_independently(self, make_encoder):
        worker, responses = self.make_worker(make_encoder(fail_on="boom"))
        items = (
            EmbedItem("fine", EntityType.STORY, "s1"),
            EmbedItem("boom", EntityType.STORY, "s2"),
            EmbedItem("also fine", EntityType.DOCUMENT, "d1"),
        )
        worker._handle(EmbedBatchRequest(id="r4", items=items))

        response = responses[-1]
        assert isinstance(response, BatchResultResponse)
        assert [r.ok for r in response.results] == [True, False, True]
        assert [r.entity_id for r in response.results] == ["s1", "s2", "d1"]

    def test_unknown_request(self, make_encoder):
        worker, responses = self.make_worker(make_encoder())
        worker._handle("not a request")
        assert responses[-1].code == ErrorCode.UNKNOWN_REQUEST


# ── EmbeddingService ─────────────────────────────────────────────────────────


class TestEmbeddingServiceInitialize:
    def test_concurrent_initialize_loads_once(self, embedding_service, hashing_encoder):
        async def run():
            await asyncio.gather(*(embedding_service.initialize() for _ in range(5)))

        asyncio.run(run())
        assert hashing_encoder.load_calls == 1
        assert embedding_service.is_ready

    def test_initialize_is_idempotent(self, embedding_service, hashing_encoder):
        asyncio.run(embedding_service.initialize())
        asyncio.run(embedding_service.initialize())
        assert hashing_encoder.load_calls == 1

    def test_progress_events(self, embedding_service):
        events = []
        asyncio.run(embedding_service.initialize(on_progress=events.append))
        assert [e.stage for e in events] == [
            ProgressStage.DOWNLOAD,
            ProgressStage.LOAD,
            ProgressStage.READY,
        ]

    def test_failing_progress_listener_does_not_break_init(self, embedding_service):
        def listener(event):
            raise ValueError("render failed")

        asyncio.run(embedding_service.initialize(on_progress=listener))
        assert embedding_service.is_ready

    def test_failure_raises_and_can_retry(self, make_encoder):
        encoder = make_encoder(fail_load=True)
        service = EmbeddingService(model=encoder, join_timeout=2.0)
        try:
            with pytest.raises(InitializationError):
                asyncio.run(service.initialize())
            assert not service.is_ready

            encoder.fail_load = False
            asyncio.run(service.initialize())
            assert service.is_ready
            assert encoder.load_calls == 2
        finally:
            service.terminate()

    def test_concurrent_callers_share_failure(self, make_encoder):
        encoder = make_encoder(fail_load=True)
        service = EmbeddingService(model=encoder, join_timeout=2.0)

        async def run():
            return await asyncio.gather(
                service.initialize(), service.initialize(), return_exceptions=True
            )

        try:
            outcomes = asyncio.run(run())
            assert all(isinstance(o, InitializationError) for o in outcomes)
            assert encoder.load_calls == 1
        finally:
            service.terminate()


class TestEmbeddingServiceEmbed:
    def test_embed_initializes_automatically(self, embedding_service, hashing_encoder):
        result = asyncio.run(embedding_service.embed("distributed systems"))
        assert embedding_service.is_ready
        assert hashing_encoder.load_calls == 1
        assert result.vector.shape == (hashing_encoder.dimension,)

    def test_vector_is_normalized(self, embedding_service):
        result = asyncio.run(embedding_service.embed("go kubernetes distributed systems"))
        assert np.isclose(np.linalg.norm(result.vector), 1.0, atol=1e-5)

    def test_hash_is_deterministic(self, embedding_service):
        async def run():
            return await embedding_service.embed("same"), await embedding_service.embed("same")

        first, second = asyncio.run(run())
        assert first.text_hash == second.text_hash
        assert np.array_equal(first.vector, second.vector)

    def test_different_texts_different_vectors(self, embedding_service):
        async def run():
            return (
                await embedding_service.embed("backend engineer with go experience"),
                await embedding_service.embed("pastry chef specializing in croissants"),
            )

        a, b = asyncio.run(run())
        assert not np.array_equal(a.vector, b.vector)
        assert a.text_hash != b.text_hash

    def test_hash_covers_untruncated_text(self, hashing_encoder):
        service = EmbeddingService(
            model=hashing_encoder, max_tokens=4, chars_per_token=3, join_timeout=2.0
        )

        async def run():
            return (
                await service.embed("shared prefix one"),
                await service.embed("shared prefix two"),
            )

        try:
            a, b = asyncio.run(run())
        finally:
            service.terminate()
        assert np.array_equal(a.vector, b.vector)
        assert a.text_hash != b.text_hash

    def test_embed_failure_raises_embedding_error(self, make_encoder):
        service = EmbeddingService(model=make_encoder(fail_on="boom"), join_timeout=2.0)
        try:
            with pytest.raises(EmbeddingError) as exc_info:
                asyncio.run(service.embed("boom"))
            assert exc_info.value.code == ErrorCode.EMBED_FAILED.value

            # the service keeps working after a failed item
            result = asyncio.run(service.embed("recovered"))
            assert result.text_hash == compute_text_hash("recovered")
        finally:
            service.terminate()

    def test_embed_raises_initialization_error_when_model_missing(self, make_encoder):
        service = EmbeddingService(model=make_encoder(fail_load=True), join_timeout=2.0)
        try:
            with pytest.raises(InitializationError):
                asyncio.run(service.embed("anything"))
        finally:
            service.terminate()

    def test_concurrent_embeds_are_routed_by_id(self, embedding_service):
        texts = [f"text number {i}" for i in range(10)]

        async def run():
            return await asyncio.gather(*(embedding_service.embed(t) for t in texts))

        results = asyncio.run(run())
        assert [r.text_hash for r in results] == [compute_text_hash(t) for t in texts]


class TestEmbeddingServiceBatch:
    def test_empty_batch(self, embedding_service, hashing_encoder):
        assert asyncio.run(embedding_service.embed_batch([])) == []
        assert hashing_encoder.load_calls == 0

    def test_per_item_failures_do_not_abort(self, make_encoder):
        service = EmbeddingService(model=make_encoder(fail_on="boom"), join_timeout=2.0)
        items = [
            EmbedItem("first", EntityType.STORY, "a"),
            EmbedItem("boom", EntityType.STORY, "b"),
            EmbedItem("third", EntityType.STORY, "c"),
        ]
        try:
            results = asyncio.run(service.embed_batch(items))
        finally:
            service.terminate()

        assert [r.ok for r in results] == [True, False, True]
        assert results[1].error
        assert results[0].text_hash == compute_text_hash("first")


class TestEmbeddingServiceDefaults:
    def test_uses_shared_model(self, monkeypatch, hashing_encoder):
        monkeypatch.setattr(embedding_model_module, "_embedding_model", hashing_encoder)
        service = EmbeddingService(join_timeout=2.0)
        try:
            asyncio.run(service.embed("hello"))
        finally:
            service.terminate()

        assert hashing_encoder.texts == ["hello"]
        assert embedding_model_module.get_embedding_model() is hashing_encoder


class TestEmbeddingServiceTerminate:
    def test_terminate_resets_ready(self, embedding_service):
        asyncio.run(embedding_service.initialize())
        embedding_service.terminate()
        assert not embedding_service.is_ready

    def test_usable_after_terminate(self, embedding_service, hashing_encoder):
        asyncio.run(embedding_service.embed("before"))
        embedding_service.terminate()
        result = asyncio.run(embedding_service.embed("after"))
        assert result.text_hash == compute_text_hash("after")
        # the model object kept its weights, so no second load
        assert hashing_encoder.load_calls == 1
