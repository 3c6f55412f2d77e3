"""
Tests for careermatch.core.retrieval: hit merging, slot selection, the
recency fallback and prompt context formatting.
"""

import asyncio
from types import SimpleNamespace

import numpy as np
import pytest

from careermatch.core.retrieval import (
    DeduplicatedHit,
    MultiQueryRetrievalEngine,
    RetrievalQuery,
    TaskInputs,
    format_context,
    merge_hits,
    story_heading,
)
from careermatch.data.models import ResumeAnalysis
from careermatch.ml.embeddings import ContentIndexer, EmbeddingRecord, SearchResult
from careermatch.utils.config import RetrievalSettings
from careermatch.utils.constants import SECTION_SEPARATOR, EntityType, TaskType
from careermatch.utils.exceptions import RetrievalDegraded


def make_record(entity_type, entity_id):
    return EmbeddingRecord(
        entity_type=entity_type,
        entity_id=entity_id,
        vector=np.ones(4, dtype=np.float32),
        content_hash="h",
    )


@pytest.fixture
def scenario(content_store, make_story, make_document, make_job, provider, vector_index):
    aws = content_store.save_story(
        make_story(
            question="Cloud infrastructure experience",
            answer="Led migration to AWS.",
            age_days=5,
        )
    )
    baking = content_store.save_story(
        make_story(
            question="Favorite dessert recipe",
            answer="I bake sourdough bread on weekends.",
            age_days=1,
        )
    )
    doc = content_store.save_document(
        make_document(
            name="Platform review",
            full_text="Owned cloud infrastructure cost reporting for AWS accounts.",
            age_days=2,
        )
    )
    job = content_store.save_job(
        make_job(
            title="Platform Engineer",
            company="Acme",
            jd_text="Cloud infrastructure experience required.",
        )
    )
    asyncio.run(ContentIndexer(provider, vector_index).index_all(content_store))
    return SimpleNamespace(aws=aws, baking=baking, doc=doc, job=job)


@pytest.fixture
def make_engine(content_store, vector_index, provider):
    def _factory(embedder=None, **settings):
        return MultiQueryRetrievalEngine(
            embedder or provider,
            vector_index,
            content_store,
            settings=RetrievalSettings(**settings),
        )

    return _factory


def tailoring_inputs(job, gaps):
    return TaskInputs(job=job, resume_analysis=ResumeAnalysis(gaps=gaps))


# ── merge_hits ───────────────────────────────────────────────────────────────


class TestMergeHits:
    def test_keeps_best_score_and_all_tags(self):
        story = make_record(EntityType.STORY, "s1")
        doc = make_record(EntityType.DOCUMENT, "d1")
        gap = RetrievalQuery("gap text", "gap")
        keyword = RetrievalQuery("keyword", "missingKeyword")

        hits = merge_hits(
            [
                (gap, [SearchResult(story, 0.5), SearchResult(doc, 0.6)]),
                (keyword, [SearchResult(story, 0.8)]),
            ]
        )

        assert [h.record.entity_id for h in hits] == ["s1", "d1"]
        assert hits[0].best_score == 0.8
        assert hits[0].source_tags == ["gap", "missingKeyword"]
        assert hits[1].source_tags == ["gap"]

    def test_repeated_tag_not_duplicated(self):
        story = make_record(EntityType.STORY, "s1")
        first = RetrievalQuery("requirement one", "requirement")
        second = RetrievalQuery("requirement two", "requirement")

        hits = merge_hits([(first, [SearchResult(story, 0.4)]), (second, [SearchResult(story, 0.7)])])
        assert len(hits) == 1
        assert hits[0].source_tags == ["requirement"]
        assert hits[0].best_score == 0.7

    def test_same_id_different_types_are_separate(self):
        query = RetrievalQuery("q", "skill")
        hits = merge_hits(
            [
                (
                    query,
                    [
                        SearchResult(make_record(EntityType.STORY, "x"), 0.5),
                        SearchResult(make_record(EntityType.DOCUMENT, "x"), 0.5),
                    ],
                )
            ]
        )
        assert len(hits) == 2

    def test_empty(self):
        assert merge_hits([]) == []


# ── selection ────────────────────────────────────────────────────────────────


class TestSelect:
    def test_story_and_document_caps_are_independent(
        self, make_engine, content_store, make_story, make_document
    ):
        stories = [content_store.save_story(make_story(question=f"Q{i}")) for i in range(5)]
        documents = [content_store.save_document(make_document(name=f"D{i}")) for i in range(2)]
        hits = [DeduplicatedHit(make_record(EntityType.STORY, s.id), 0.9) for s in stories]
        hits += [DeduplicatedHit(make_record(EntityType.DOCUMENT, d.id), 0.4) for d in documents]

        selected_stories, selected_documents = make_engine().select(
            hits, max_stories=2, max_documents=1
        )
        assert [s.id for s in selected_stories] == [stories[0].id, stories[1].id]
        assert [d.id for d in selected_documents] == [documents[0].id]

    def test_hits_for_deleted_content_skipped(self, make_engine, content_store, make_story):
        kept = content_store.save_story(make_story())
        hits = [
            DeduplicatedHit(make_record(EntityType.STORY, "deleted"), 0.9),
            DeduplicatedHit(make_record(EntityType.STORY, kept.id), 0.5),
        ]
        stories, _ = make_engine().select(hits, max_stories=3, max_documents=3)
        assert [s.id for s in stories] == [kept.id]

    def test_select_recent_orders_by_creation(
        self, make_engine, content_store, make_story, make_document
    ):
        old = content_store.save_story(make_story(question="old", age_days=3))
        newest = content_store.save_story(make_story(question="newest", age_days=1))
        middle = content_store.save_story(make_story(question="middle", age_days=2))
        content_store.save_document(make_document(name="doc-old", age_days=9))
        recent_doc = content_store.save_document(make_document(name="doc-new", age_days=0))

        stories, documents = make_engine().select_recent(max_stories=2, max_documents=1)
        assert [s.id for s in stories] == [newest.id, middle.id]
        assert [d.id for d in documents] == [recent_doc.id]
        assert old not in stories


# ── search ───────────────────────────────────────────────────────────────────


class TestSearch:
    def test_not_ready_raises(self, make_engine, make_provider):
        engine = make_engine(make_provider(ready=False))
        with pytest.raises(RetrievalDegraded):
            asyncio.run(engine.search([RetrievalQuery("anything at all", "gap")]))

    def test_no_queries_raises(self, make_engine):
        with pytest.raises(RetrievalDegraded):
            asyncio.run(make_engine().search([]))

    def test_all_queries_failing_raises(self, make_engine, make_provider):
        engine = make_engine(make_provider(fail_all=True))
        queries = [RetrievalQuery("one query", "gap"), RetrievalQuery("two query", "gap")]
        with pytest.raises(RetrievalDegraded):
            asyncio.run(engine.search(queries))

    def test_queries_run_concurrently(self, scenario, make_engine, make_provider):
        query_provider = make_provider()
        engine = make_engine(query_provider)
        queries = [RetrievalQuery(f"cloud infrastructure {i}", "gap") for i in range(4)]
        asyncio.run(engine.search(queries))
        assert query_provider.max_active == 4

    def test_only_stories_and_documents_returned(self, scenario, make_engine):
        hits = asyncio.run(
            make_engine().search(
                [RetrievalQuery("Cloud infrastructure experience required", "requirement")],
                threshold=0.0,
            )
        )
        assert hits
        assert {EntityType(h.record.entity_type) for h in hits} <= {
            EntityType.STORY,
            EntityType.DOCUMENT,
        }


# ── retrieve ─────────────────────────────────────────────────────────────────


class TestRetrieve:
    def test_gap_query_finds_matching_story(self, scenario, make_engine):
        inputs = tailoring_inputs(scenario.job, ["No cloud infrastructure experience"])
        result = asyncio.run(make_engine().retrieve(TaskType.RESUME_TAILORING, inputs))

        assert result.used_semantic_search is True
        assert result.selected_stories[0].id == scenario.aws.id
        assert scenario.baking.id not in [s.id for s in result.selected_stories]
        assert result.hits[0].source_tags == ["gap"]
        assert "## Experiences That Could Address Gaps" in result.context_text
        assert "**Cloud infrastructure experience**\nLed migration to AWS." in result.context_text
        assert "## Additional Context" in result.context_text

    def test_partial_failure_still_semantic(self, scenario, make_engine, make_provider):
        engine = make_engine(make_provider(fail_on_calls=[1]))
        inputs = tailoring_inputs(
            scenario.job, ["Weak public speaking", "No cloud infrastructure experience"]
        )
        result = asyncio.run(engine.retrieve(TaskType.RESUME_TAILORING, inputs))

        assert result.used_semantic_search is True
        assert [s.id for s in result.selected_stories] == [scenario.aws.id]

    def test_not_ready_falls_back_to_recent(self, scenario, make_engine, make_provider):
        engine = make_engine(make_provider(ready=False))
        inputs = tailoring_inputs(scenario.job, ["No cloud infrastructure experience"])
        result = asyncio.run(
            engine.retrieve(TaskType.RESUME_TAILORING, inputs, max_stories=1, max_documents=1)
        )

        assert result.used_semantic_search is False
        assert [s.id for s in result.selected_stories] == [scenario.baking.id]
        assert [d.id for d in result.selected_documents] == [scenario.doc.id]
        assert result.queries_used
        assert result.hits == []

    def test_all_failing_falls_back_to_recent(self, scenario, make_engine, make_provider):
        engine = make_engine(make_provider(fail_all=True))
        inputs = tailoring_inputs(scenario.job, ["No cloud infrastructure experience"])
        result = asyncio.run(engine.retrieve(TaskType.RESUME_TAILORING, inputs))

        assert result.used_semantic_search is False
        assert [s.id for s in result.selected_stories] == [scenario.baking.id, scenario.aws.id]

    def test_no_queries_falls_back(self, content_store, make_job, make_engine, make_story):
        content_store.save_story(make_story())
        job = content_store.save_job(make_job(jd_text=""))
        result = asyncio.run(make_engine().retrieve(TaskType.RESUME_GRADING, TaskInputs(job=job)))

        assert result.queries_used == []
        assert result.used_semantic_search is False
        assert len(result.selected_stories) == 1

    def test_caps_default_from_settings(self, scenario, make_engine, make_provider):
        engine = make_engine(make_provider(ready=False), max_stories=1, max_documents=0)
        inputs = tailoring_inputs(scenario.job, ["No cloud infrastructure experience"])
        result = asyncio.run(engine.retrieve(TaskType.RESUME_TAILORING, inputs))

        assert len(result.selected_stories) == 1
        assert result.selected_documents == []


class TestImprovementsContext:
    @pytest.fixture
    def tailored_job(self, content_store, make_job):
        return content_store.save_job(
            make_job(
                title="Data Engineer",
                company="Globex",
                resume_text="Responsible for building the reporting dashboard used internally.",
                tailored_resume="Built a real-time analytics dashboard used by 200+ engineers.",
                age_days=1,
            )
        )

    def test_added_for_tailoring(self, scenario, tailored_job, make_engine):
        inputs = tailoring_inputs(scenario.job, ["No cloud infrastructure experience"])
        result = asyncio.run(make_engine().retrieve(TaskType.RESUME_TAILORING, inputs))
        assert "Learned Improvements from Previous Tailoring" in result.context_text

    def test_added_for_refinement(self, scenario, tailored_job, make_engine):
        engine = make_engine()
        context = engine.improvements_context(TaskType.REFINEMENT, TaskInputs(job=scenario.job))
        assert context.startswith("## Learned Improvements")

    @pytest.mark.parametrize(
        "task", [TaskType.COVER_LETTER, TaskType.RESUME_GRADING, TaskType.INTERVIEW_PREP]
    )
    def test_not_added_for_other_tasks(self, scenario, tailored_job, make_engine, task):
        result = asyncio.run(make_engine().retrieve(task, TaskInputs(job=scenario.job)))
        assert "Learned Improvements" not in result.context_text

    def test_current_job_excluded(self, tailored_job, make_engine):
        context = make_engine().improvements_context(
            TaskType.RESUME_TAILORING, TaskInputs(job=tailored_job)
        )
        assert context == ""


# ── formatting ───────────────────────────────────────────────────────────────


class TestFormatContext:
    def test_story_headings(self):
        assert story_heading(TaskType.RESUME_TAILORING) == "Experiences That Could Address Gaps"
        assert story_heading(TaskType.INTERVIEW_PREP) == "Relevant Interview Examples"
        assert story_heading(TaskType.COVER_LETTER) == "Relevant Experiences to Highlight"
        assert story_heading(TaskType.RESUME_GRADING) == "Relevant Experiences"
        assert story_heading(TaskType.REFINEMENT) == "Relevant Experiences"

    def test_section_order(self, make_story, make_document):
        text = format_context(
            TaskType.COVER_LETTER,
            [make_story(question="Q", answer="A")],
            [make_document(name="Doc", full_text="Body")],
            additional_context="Extra",
            improvements_context="## Learned Improvements\n\n- x",
        )
        assert text.startswith(SECTION_SEPARATOR)
        sections = text[len(SECTION_SEPARATOR):].split(SECTION_SEPARATOR)
        assert sections == [
            "## Relevant Experiences to Highlight\n\n**Q**\nA",
            "## Reference Documents\n\n### Doc\nBody",
            "## Learned Improvements\n\n- x",
            "## Additional Context\n\nExtra",
        ]

    def test_document_summary_used(self, make_document):
        doc = make_document(name="Doc", full_text="Long body", summary="Short", use_summary=True)
        assert "### Doc\nShort" in format_context(TaskType.RESUME_GRADING, [], [doc])

    def test_empty(self):
        assert format_context(TaskType.RESUME_GRADING, [], [], "", "") == ""

    def test_blank_additional_context_skipped(self):
        assert format_context(TaskType.RESUME_GRADING, [], [], "   ") == ""
