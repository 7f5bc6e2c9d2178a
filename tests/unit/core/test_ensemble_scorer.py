import asyncio
import random

import pytest

from service.core.exceptions import ValidationError
from service.core.ml.engines.ensemble_scorer import EnsembleScorer
from service.core.ml.engines.structural_evaluator import HashStructuralEvaluator
from service.core.ml.utils.result_builder import ResultBuilder
from tests.fixtures.scoring_fixtures import StubEvaluator

DEFAULT_WEIGHTS = {"semantic": 0.5, "perceptual": 0.3, "structural": 0.2}


def _scorer(values, weights=None, disabled_metrics=None, **kwargs):
    evaluators = [StubEvaluator(name, value) for name, value in values.items()]
    return EnsembleScorer(evaluators, weights or DEFAULT_WEIGHTS, metrics_recorder=disabled_metrics, **kwargs)


class TestWeightedCombination:
    """Test weighted aggregation of metric scores"""

    @pytest.mark.asyncio
    async def test_all_ones_scores_100(self, disabled_metrics, target_url, generated_url):
        scorer = _scorer({"semantic": 1.0, "perceptual": 1.0, "structural": 1.0}, disabled_metrics=disabled_metrics)

        breakdown = await scorer.score(target_url, generated_url)

        assert breakdown.final == 100
        assert breakdown.similarity == pytest.approx(1.0)
        assert breakdown.components == {"semantic": 1.0, "perceptual": 1.0, "structural": 1.0}

    @pytest.mark.asyncio
    async def test_all_zeros_scores_0(self, disabled_metrics, target_url, generated_url):
        scorer = _scorer({"semantic": 0.0, "perceptual": 0.0, "structural": 0.0}, disabled_metrics=disabled_metrics)

        breakdown = await scorer.score(target_url, generated_url)

        assert breakdown.final == 0
        assert breakdown.similarity == 0.0
        assert not breakdown.is_low_confidence

    @pytest.mark.asyncio
    async def test_weighted_sum(self, disabled_metrics, target_url, generated_url):
        scorer = _scorer({"semantic": 0.8, "perceptual": 0.6, "structural": 0.5}, disabled_metrics=disabled_metrics)

        breakdown = await scorer.score(target_url, generated_url)

        # 0.5 * 0.8 + 0.3 * 0.6 + 0.2 * 0.5
        assert breakdown.similarity == pytest.approx(0.68)
        assert breakdown.final == 68

    @pytest.mark.asyncio
    async def test_custom_weights(self, disabled_metrics, target_url, generated_url):
        scorer = _scorer(
            {"semantic": 1.0, "perceptual": 0.0, "structural": 0.0},
            weights={"semantic": 0.2, "perceptual": 0.4, "structural": 0.4},
            disabled_metrics=disabled_metrics,
        )

        breakdown = await scorer.score(target_url, generated_url)

        assert breakdown.final == 20

    @pytest.mark.asyncio
    async def test_failed_metric_contributes_neutral_score(self, disabled_metrics, target_url, generated_url):
        evaluators = [
            StubEvaluator("semantic", error=RuntimeError("remote down")),
            StubEvaluator("perceptual", 1.0),
            StubEvaluator("structural", 1.0),
        ]
        scorer = EnsembleScorer(evaluators, DEFAULT_WEIGHTS, metrics_recorder=disabled_metrics)

        breakdown = await scorer.score(target_url, generated_url)

        assert breakdown.components["semantic"] == 0.5
        assert breakdown.final == 75

    @pytest.mark.asyncio
    async def test_evaluator_raising_from_evaluate_is_contained(self, disabled_metrics, target_url, generated_url):
        class BrokenEvaluator(StubEvaluator):
            async def evaluate(self, target, generated):
                raise RuntimeError("contract violation")

        evaluators = [BrokenEvaluator("semantic"), StubEvaluator("perceptual", 0.0), StubEvaluator("structural", 0.0)]
        scorer = EnsembleScorer(evaluators, DEFAULT_WEIGHTS, metrics_recorder=disabled_metrics)

        breakdown = await scorer.score(target_url, generated_url)

        assert breakdown.components == {"semantic": 0.5, "perceptual": 0.0, "structural": 0.0}
        assert breakdown.final == 25

    @pytest.mark.asyncio
    async def test_evaluators_run_concurrently(self, disabled_metrics, target_url, generated_url):
        evaluators = [StubEvaluator(name, 0.5, delay=0.2) for name in DEFAULT_WEIGHTS]
        scorer = EnsembleScorer(evaluators, DEFAULT_WEIGHTS, metrics_recorder=disabled_metrics)

        loop = asyncio.get_running_loop()
        start = loop.time()
        await scorer.score(target_url, generated_url)

        assert loop.time() - start < 0.5
        assert all(evaluator.calls == 1 for evaluator in evaluators)

    @pytest.mark.asyncio
    async def test_idempotent_with_deterministic_evaluators(self, disabled_metrics, target_url, generated_url):
        evaluators = [
            StubEvaluator("semantic", 0.71),
            StubEvaluator("perceptual", 0.64),
            HashStructuralEvaluator(metrics_recorder=disabled_metrics),
        ]
        scorer = EnsembleScorer(evaluators, DEFAULT_WEIGHTS, metrics_recorder=disabled_metrics)

        first = await scorer.score(target_url, generated_url)
        second = await scorer.score(target_url, generated_url)

        assert first == second

    @pytest.mark.asyncio
    async def test_final_is_bounded(self, disabled_metrics, target_url, generated_url):
        for seed in range(20):
            rng = random.Random(seed)
            values = {name: rng.random() for name in DEFAULT_WEIGHTS}
            breakdown = await _scorer(values, disabled_metrics=disabled_metrics).score(target_url, generated_url)

            assert 0 <= breakdown.final <= 100
            assert 0.0 <= breakdown.similarity <= 1.0
            assert all(0.0 <= value <= 1.0 for value in breakdown.components.values())


class TestScorerValidation:
    """Test construction and input validation"""

    def test_no_evaluators(self, disabled_metrics):
        with pytest.raises(ValidationError, match="At least one"):
            EnsembleScorer([], {}, metrics_recorder=disabled_metrics)

    def test_duplicate_names(self, disabled_metrics):
        evaluators = [StubEvaluator("semantic"), StubEvaluator("semantic")]
        with pytest.raises(ValidationError, match="Duplicate"):
            EnsembleScorer(evaluators, {"semantic": 1.0}, metrics_recorder=disabled_metrics)

    def test_weights_must_match_evaluators(self, disabled_metrics):
        with pytest.raises(ValidationError, match="do not match"):
            _scorer({"semantic": 0.5, "perceptual": 0.5}, weights={"semantic": 0.5, "structural": 0.5},
                    disabled_metrics=disabled_metrics)

    def test_weights_must_sum_to_one(self, disabled_metrics):
        with pytest.raises(ValidationError, match="sum to 1.0"):
            _scorer({"semantic": 0.5, "perceptual": 0.5}, weights={"semantic": 0.5, "perceptual": 0.6},
                    disabled_metrics=disabled_metrics)

    def test_negative_weight(self, disabled_metrics):
        with pytest.raises(ValidationError, match="non-negative"):
            _scorer({"semantic": 0.5, "perceptual": 0.5}, weights={"semantic": 1.5, "perceptual": -0.5},
                    disabled_metrics=disabled_metrics)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target,generated", [("", "b.png"), ("a.png", ""), ("", "")])
    async def test_empty_locators(self, disabled_metrics, target, generated):
        scorer = _scorer({"semantic": 0.5, "perceptual": 0.5, "structural": 0.5}, disabled_metrics=disabled_metrics)

        with pytest.raises(ValidationError):
            await scorer.score(target, generated)

    def test_pipeline_timeout_property(self, disabled_metrics):
        scorer = _scorer(
            {"semantic": 0.5, "perceptual": 0.5, "structural": 0.5}, disabled_metrics=disabled_metrics, pipeline_timeout=3.0
        )
        assert scorer.pipeline_timeout == 3.0


class TestResultBuilder:
    """Test construction of scores and breakdowns"""

    def test_success_score_is_clamped(self):
        score = ResultBuilder().create_success_score("semantic", 1.3, 12.0)
        assert score.value == 1.0
        assert score.success

    def test_non_finite_success_becomes_failure(self):
        score = ResultBuilder().create_success_score("semantic", float("nan"), 12.0)
        assert not score.success
        assert score.value == 0.5
        assert score.error_type == "extraction_failed"

    def test_failed_score_uses_neutral_value(self):
        score = ResultBuilder(neutral_score=0.4).create_failed_score("perceptual", "boom", "rejected")
        assert score.value == 0.4
        assert score.error == "boom"
        assert score.error_type == "rejected"

    def test_fallback_breakdown_band(self, seeded_rng):
        builder = ResultBuilder(rng=seeded_rng)
        for _ in range(50):
            breakdown = builder.create_fallback_breakdown()
            assert 0.65 <= breakdown.similarity <= 0.75
            assert 65 <= breakdown.final <= 75
            assert breakdown.components is None
            assert breakdown.is_low_confidence

    def test_fallback_breakdown_reproducible_with_seed(self):
        first = ResultBuilder(rng=random.Random(7)).create_fallback_breakdown()
        second = ResultBuilder(rng=random.Random(7)).create_fallback_breakdown()
        assert first == second

    def test_breakdown_clamps_final(self):
        assert ResultBuilder.create_breakdown(1.2, {"semantic": 1.0}).final == 100
        assert ResultBuilder.create_breakdown(-0.1, {"semantic": 0.0}).final == 0
