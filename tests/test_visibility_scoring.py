"""Tests for batch visibility scoring and score persistence."""

import logging

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import func, select

from brandpulse.analysis.hybrid_scorer import HybridScoringOrchestrator, MentionCounter
from brandpulse.analysis.types import (
    AnswerContext,
    BrandSpec,
    CompetitorSpec,
    MentionCountingError,
    ScoreRow,
    UnscoreableAnswerError,
)
from brandpulse.gateway.fallback import ProviderChain
from brandpulse.gateway.types import CompletionResponse, ProviderName
from brandpulse.models.brand import Brand, BrandCompetitor
from brandpulse.models.collector_result import CollectorResult
from brandpulse.models.score import Score
from brandpulse.services.score_store import ScoreRepository
from brandpulse.services.visibility_scoring import ScoringBatchResult, VisibilityScoringService, _competitor_names


def _row(context, brand, competitor, vi: float = 0.5) -> ScoreRow:
    return ScoreRow(
        customer_id=context.customer_id,
        brand_id=context.brand_id,
        brand_name=brand.name,
        query_id=context.query_id,
        query_text=context.query_text,
        execution_id=context.execution_id,
        collector_type=context.collector_type,
        competitor_name=competitor.name,
        visibility_index=vi,
        visibility_index_competitor=0.25,
        share_of_answers=50.0,
        share_of_answers_competitor=50.0,
        sentiment_score=1.0,
        sentiment_score_competitor=None,
        brand_positions=(1, 9),
        competitor_positions=(4,),
        positive_sentiment_sentences=("Acme is great.",),
        total_words=12,
    )


class FakeOrchestrator:
    """Returns one canned row per competitor; special answers raise."""

    def __init__(self):
        self.calls = []

    async def score_answer(self, context, brand, competitors, raw_answer):
        self.calls.append((context, brand, list(competitors), raw_answer))
        if raw_answer == "UNSCOREABLE":
            raise UnscoreableAnswerError("answer contains no words")
        if raw_answer == "PROVIDERS DOWN":
            raise MentionCountingError("All LLM providers failed")
        if raw_answer == "BUG":
            raise RuntimeError("unexpected payload")
        if not competitors:
            raise UnscoreableAnswerError("no competitors configured")
        return [_row(context, brand, c, vi=float(len(raw_answer))) for c in competitors]


async def _add(session_factory, *objects):
    async with session_factory() as session:
        session.add_all(objects)
        await session.commit()
        return [getattr(o, "id", None) for o in objects]


def _result(**overrides) -> CollectorResult:
    values = {
        "customer_id": "cust-1",
        "brand_id": "brand-1",
        "query_id": "q-1",
        "question": "Best anvil brand?",
        "execution_id": "exec-1",
        "collector_type": "chatgpt",
        "brand": "Acme",
        "competitors": ["Globex"],
        "raw_answer": "Acme is great. Globex is okay.",
        "status": "completed",
    }
    values.update(overrides)
    return CollectorResult(**values)


@pytest.fixture
def orchestrator():
    return FakeOrchestrator()


@pytest.fixture
def service(session_factory, orchestrator):
    return VisibilityScoringService(session_factory, orchestrator, batch_size=10, concurrency=2)


async def _scores(session_factory) -> list[Score]:
    async with session_factory() as session:
        return list((await session.execute(select(Score).order_by(Score.id))).scalars().all())


class TestCompetitorNames:
    def test_strings_and_objects(self):
        raw = ["Globex", {"name": "Initech"}, {"competitor_name": "Hooli"}, {"other": 1}, 3, " globex "]
        assert _competitor_names(raw) == ["Globex", "Initech", "Hooli"]

    def test_not_a_list(self):
        assert _competitor_names(None) == []
        assert _competitor_names({"name": "Globex"}) == []


class TestScorePending:
    async def test_scores_completed_answers(self, service, session_factory, orchestrator):
        (result_id,) = await _add(session_factory, _result())

        result = await service.score_pending()

        assert result.scored == 1
        assert result.rows_upserted == 1
        scores = await _scores(session_factory)
        assert len(scores) == 1
        score = scores[0]
        assert score.collector_result_id == result_id
        assert score.competitor_name == "Globex"
        assert score.brand_position == 1
        assert score.brand_positions == [1, 9]
        assert score.competitor_position == 4
        assert score.positive_sentiment_sentences == ["Acme is great."]
        assert score.sentiment_score_competitor is None

        context = orchestrator.calls[0][0]
        assert context.collector_result_id == result_id
        assert context.query_text == "Best anvil brand?"

    async def test_scored_answers_are_not_rescored(self, service, session_factory, orchestrator):
        await _add(session_factory, _result())

        await service.score_pending()
        second = await service.score_pending()

        assert second.scored == 0
        assert len(orchestrator.calls) == 1

    async def test_ignores_unfinished_and_empty_answers(self, service, session_factory, orchestrator):
        await _add(
            session_factory,
            _result(status="processing"),
            _result(status="failed"),
            _result(raw_answer=None),
            _result(raw_answer=""),
        )

        result = await service.score_pending()

        assert result.scored == 0
        assert orchestrator.calls == []

    async def test_batch_size_limits_newest_first(self, session_factory, orchestrator):
        ids = await _add(session_factory, *(_result(query_id=f"q-{i}") for i in range(4)))
        service = VisibilityScoringService(session_factory, orchestrator, batch_size=2)

        await service.score_pending()

        assert sorted(call[0].collector_result_id for call in orchestrator.calls) == sorted(ids[-2:])

    async def test_newer_answer_supersedes_older(self, service, session_factory, orchestrator):
        await _add(session_factory, _result(raw_answer="old answer"))
        (newer_id,) = await _add(session_factory, _result(raw_answer="the newer answer"))

        await service.score_pending()
        again = await service.score_pending()

        scores = await _scores(session_factory)
        assert len(scores) == 1
        assert scores[0].collector_result_id == newer_id
        assert scores[0].visibility_index == float(len("the newer answer"))
        assert again.scored == 0

    async def test_failures_do_not_abort_batch(self, service, session_factory):
        await _add(
            session_factory,
            _result(query_id="q-1"),
            _result(query_id="q-2", raw_answer="UNSCOREABLE"),
            _result(query_id="q-3", raw_answer="PROVIDERS DOWN"),
        )

        result = await service.score_pending()

        assert result.scored == 1
        assert len(result.skipped) == 1
        assert "no words" in result.skipped[0]
        assert len(result.errors) == 1
        assert result.to_dict() == {
            "scored": 1,
            "rows_upserted": 1,
            "skipped": 1,
            "errors": result.errors,
        }

    async def test_unexpected_error_does_not_abort_batch(self, service, session_factory):
        def failed_count():
            return REGISTRY.get_sample_value("answers_scored_total", {"outcome": "failed"}) or 0.0

        before = failed_count()
        good_id, bug_id = await _add(
            session_factory, _result(query_id="q-1"), _result(query_id="q-2", raw_answer="BUG")
        )

        result = await service.score_pending()

        assert result.scored == 1
        assert result.errors == [f"{bug_id}: RuntimeError: unexpected payload"]
        assert failed_count() == before + 1
        scores = await _scores(session_factory)
        assert [s.collector_result_id for s in scores] == [good_id]

    async def test_failure_logs_carry_answer_identity(self, service, session_factory, caplog):
        (row_id,) = await _add(session_factory, _result(raw_answer="PROVIDERS DOWN"))

        with caplog.at_level(logging.ERROR, logger="brandpulse.services.visibility_scoring"):
            await service.score_pending()

        (record,) = [r for r in caplog.records if r.name == "brandpulse.services.visibility_scoring"]
        assert record.collector_result_id == row_id
        assert record.execution_id == "exec-1"
        assert record.brand_id == "brand-1"

    async def test_empty_batch(self, service):
        assert (await service.score_pending()).to_dict() == ScoringBatchResult().to_dict()


@pytest.fixture
def answer_keyed_adapter(scripted_adapter):
    class AnswerKeyedAdapter(scripted_adapter):
        """Counts every answer except the one mentioning a broken stock, which gets NaN."""

        async def complete(self, request, timeout=30.0):
            self.requests.append(request)
            if request.purpose == "product_extraction":
                text = "[]"
            elif "stock is broken" in request.prompt:
                text = '{"Acme": NaN, "Globex": 1}'
            else:
                text = '{"Acme": 1, "Globex": 1}'
            return CompletionResponse(request_id=request.request_id, provider=self.provider, text=text)

    return AnswerKeyedAdapter(ProviderName.CEREBRAS)


class TestScorePendingWithOrchestrator:
    async def test_bad_provider_reply_fails_only_its_answer(self, session_factory, answer_keyed_adapter):
        orchestrator = HybridScoringOrchestrator(MentionCounter(ProviderChain([answer_keyed_adapter])))
        service = VisibilityScoringService(session_factory, orchestrator, concurrency=1)
        good_id, bad_id = await _add(
            session_factory,
            _result(query_id="q-1"),
            _result(query_id="q-2", raw_answer="Acme stock is broken. Globex is fine."),
        )

        result = await service.score_pending()

        assert result.scored == 1
        assert result.rows_upserted == 1
        assert len(result.errors) == 1
        assert result.errors[0].startswith(f"{bad_id}: ")
        scores = await _scores(session_factory)
        assert len(scores) == 1
        assert scores[0].collector_result_id == good_id
        assert scores[0].share_of_answers == pytest.approx(50.0)


class TestJobResolution:
    async def test_brand_and_competitors_from_configuration(self, service, session_factory, orchestrator):
        await _add(
            session_factory,
            Brand(id="brand-1", name="Acme", metadata_={"aliases": ["Acme Widgets", 5]}),
        )
        await _add(
            session_factory,
            BrandCompetitor(brand_id="brand-1", competitor_name="Initech", priority=2),
            BrandCompetitor(
                brand_id="brand-1", competitor_name="Globex", priority=1, metadata_={"aliases": ["Globex Corp"]}
            ),
            BrandCompetitor(brand_id="brand-1", competitor_name="acme", priority=3),
        )
        await _add(session_factory, _result(brand=None, competitors=None))

        result = await service.score_pending()

        _, brand, competitors, _ = orchestrator.calls[0]
        assert brand.name == "Acme"
        assert brand.aliases == ("Acme Widgets",)
        assert [c.name for c in competitors] == ["Globex", "Initech"]
        assert competitors[0].aliases == ("Globex Corp",)
        assert result.rows_upserted == 2

    async def test_result_competitors_take_precedence(self, service, session_factory, orchestrator):
        await _add(session_factory, Brand(id="brand-1", name="Acme"))
        await _add(
            session_factory,
            BrandCompetitor(brand_id="brand-1", competitor_name="Globex", metadata_={"aliases": ["GBX"]}),
            BrandCompetitor(brand_id="brand-1", competitor_name="Initech"),
        )
        await _add(session_factory, _result(competitors=[{"name": "globex"}, "Hooli", "Acme"]))

        await service.score_pending()

        _, _, competitors, _ = orchestrator.calls[0]
        assert [c.name for c in competitors] == ["globex", "Hooli"]
        assert competitors[0].aliases == ("GBX",)
        assert competitors[1].aliases == ()

    async def test_answer_without_brand_record(self, service, session_factory, orchestrator):
        await _add(session_factory, _result(brand_id=None))

        await service.score_pending()

        _, brand, competitors, _ = orchestrator.calls[0]
        assert brand.name == "Acme"
        assert brand.aliases == ()
        assert [c.name for c in competitors] == ["Globex"]


class TestScoreRepository:
    async def test_upsert_updates_existing_key(self, session_factory):
        fake = FakeOrchestrator()
        context = AnswerContext(brand_id="brand-1", query_id=None, collector_type="gemini")
        brand = BrandSpec(id="brand-1", name="Acme")
        (first,) = await fake.score_answer(context, brand, [CompetitorSpec("Globex")], "abc")
        (second,) = await fake.score_answer(context, brand, [CompetitorSpec("Globex")], "abcdef")

        repository = ScoreRepository()
        async with session_factory() as session:
            await repository.upsert(session, first, collector_result_id=1)
            await repository.upsert(session, second, collector_result_id=2)
            await session.commit()

        async with session_factory() as session:
            count = await session.scalar(select(func.count()).select_from(Score))
            score = (await session.execute(select(Score))).scalar_one()
        assert count == 1
        assert score.visibility_index == 6.0
        assert score.collector_result_id == 2
        assert score.query_id is None
        assert score.updated_at is not None
