from types import SimpleNamespace

import pytest

from lead_intake.services.scoring import (
    DEMO_ENGINE,
    PRODUCTION_ENGINE,
    ScoredResponse,
    ScoringEngine,
    Tier,
    TierAction,
    extract_contact_info,
    max_points_for_question,
    points_for_answer,
    tier_action,
    tier_description,
)
from lead_intake.services.seed import ASSESSMENT_QUESTIONS_PATH, DEMO_QUESTIONS_PATH, load_questions


def _one(points, number=2):
    return [ScoredResponse(question_id=f"q{number}", question_number=number, answer="x", points_earned=points)]


@pytest.mark.parametrize("points,pct,tier", [
    (699, 100, Tier.QUALIFIED),
    (556, 80, Tier.QUALIFIED),
    (555, 79, Tier.HOT),
    (416, 60, Tier.HOT),
    (415, 59, Tier.WARM),
    (277, 40, Tier.WARM),
    (276, 39, Tier.COLD),
    (0, 0, Tier.COLD),
])
def test_production_bands(points, pct, tier):
    result = PRODUCTION_ENGINE.score(_one(points))
    assert result.percentage_score == pct
    assert result.tier is tier


@pytest.mark.parametrize("points,pct,tier", [
    (92, 100, Tier.GREAT_FIT),
    (64, 70, Tier.GREAT_FIT),
    (63, 68, Tier.GOOD_FIT),
    (37, 40, Tier.GOOD_FIT),
    (36, 39, Tier.NOT_READY),
])
def test_demo_bands(points, pct, tier):
    result = DEMO_ENGINE.score(_one(points))
    assert result.percentage_score == pct
    assert result.tier is tier


def test_percentage_is_clamped():
    assert PRODUCTION_ENGINE.score(_one(5000)).percentage_score == 100
    engine = ScoringEngine("empty", 0, PRODUCTION_ENGINE.bands, Tier.COLD, {})
    assert engine.score(_one(10)).percentage_score == 0


def test_breakdown_buckets_by_question_number():
    responses = [
        ScoredResponse("q1", 1, {"name": "A"}, 0),
        ScoredResponse("q5", 5, "x", 20),
        ScoredResponse("q7", 7, "x", 10),
        ScoredResponse("q10", 10, "x", 75),
        ScoredResponse("q13", 13, "x", 90),
    ]
    result = PRODUCTION_ENGINE.score(responses)
    assert result.total_points == 195
    assert result.breakdown == {"contactInfo": 0, "currentState": 30, "goals": 75, "readiness": 90}


def test_scoring_trusts_submitted_points():
    result = PRODUCTION_ENGINE.score([ScoredResponse("q2", 2, "1-50", 600)])
    assert result.tier is Tier.QUALIFIED


def test_tier_actions():
    assert tier_action(Tier.QUALIFIED) is TierAction.AI_WORKFLOW
    assert tier_action("hot") is TierAction.AI_WORKFLOW
    assert tier_action("warm") is TierAction.NURTURE
    assert tier_action("cold") is TierAction.NURTURE
    assert tier_action("great-fit") is TierAction.MANUAL_REVIEW
    assert tier_action("good-fit") is TierAction.MANUAL_REVIEW
    assert tier_action("not-ready") is TierAction.MANUAL_REVIEW
    assert tier_action("platinum") is TierAction.MANUAL_REVIEW
    assert tier_description("platinum") == "Unknown"
    assert tier_description(Tier.HOT)


def test_extract_contact_info_accepts_both_field_spellings():
    full = extract_contact_info([ScoredResponse("q1", 1, {"full_name": "Ada", "email": "ada@x.io", "job_title": "CTO"})])
    assert (full.name, full.email, full.title) == ("Ada", "ada@x.io", "CTO")
    short = extract_contact_info([ScoredResponse("q1", 1, {"name": "Bob", "email": "b@x.io", "title": "VP"})])
    assert (short.name, short.title) == ("Bob", "VP")
    assert short.is_complete


def test_extract_contact_info_missing_or_malformed():
    assert not extract_contact_info([]).is_complete
    assert not extract_contact_info([ScoredResponse("q1", 1, "not a mapping")]).is_complete
    assert not extract_contact_info([ScoredResponse("q1", 1, {"name": "NoEmail"})]).is_complete


def _question(qtype, weight, scores):
    return SimpleNamespace(
        question_type=qtype,
        scoring_weight=weight,
        options=[{"value": v, "score": s} for v, s in scores.items()],
    )


def test_points_for_answer():
    mc = _question("multiple_choice", 3, {"a": 10, "b": 25})
    assert points_for_answer(mc, "b") == 75
    assert points_for_answer(mc, "zzz") == 0
    cb = _question("checkbox", 2, {"a": 5, "b": 8, "c": 10})
    assert points_for_answer(cb, ["a", "c"]) == 30
    assert points_for_answer(cb, "a") == 0
    assert max_points_for_question(mc) == 75
    assert max_points_for_question(cb) == 46
    assert max_points_for_question(_question("text", 1, {})) == 0


def _as_questions(path):
    return [
        SimpleNamespace(
            question_number=q["question_number"],
            question_type=q["question_type"],
            scoring_weight=q.get("scoring_weight", 1),
            options=q.get("options"),
        )
        for q in load_questions(path)
    ]


def test_seeded_question_sets_match_engine_maximums():
    assessment = _as_questions(ASSESSMENT_QUESTIONS_PATH)
    demo = _as_questions(DEMO_QUESTIONS_PATH)
    assert len(assessment) == 16
    assert sum(max_points_for_question(q) for q in assessment) == PRODUCTION_ENGINE.max_possible_points
    assert sum(max_points_for_question(q) for q in demo) == DEMO_ENGINE.max_possible_points


def test_engine_for_questions():
    questions = _as_questions(ASSESSMENT_QUESTIONS_PATH)
    engine = ScoringEngine.for_questions(questions, name="acme")
    assert engine.max_possible_points == 699
    assert engine.score(_one(560)).tier is Tier.QUALIFIED
    assert set(engine.breakdown) == {"contact_info", "multiple_choice", "checkbox", "text"}
