# lead_intake/services/scoring.py
"""
Readiness scoring for assessment submissions.

A ScoringEngine is a pure function of the submitted responses: it never
re-validates the points the form layer attached to each answer, it only sums,
normalizes to 0-100 and maps the percentage onto a tier.

Three engines are in use:
  PRODUCTION_ENGINE  help desk assessment, 699 max points
  DEMO_ENGINE        product-fit demo, 92 max points
  ScoringEngine.for_questions(...)  per-tenant quiz built from its question set
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple


class Tier(str, Enum):
    QUALIFIED = "qualified"
    HOT = "hot"
    WARM = "warm"
    COLD = "cold"
    GREAT_FIT = "great-fit"
    GOOD_FIT = "good-fit"
    NOT_READY = "not-ready"


class TierAction(str, Enum):
    AI_WORKFLOW = "ai_workflow"
    NURTURE = "nurture"
    MANUAL_REVIEW = "manual_review"


TIER_ACTIONS: Dict[Tier, TierAction] = {
    Tier.QUALIFIED: TierAction.AI_WORKFLOW,
    Tier.HOT: TierAction.AI_WORKFLOW,
    Tier.WARM: TierAction.NURTURE,
    Tier.COLD: TierAction.NURTURE,
    # demo leads are followed up by sales, whatever the fit
    Tier.GREAT_FIT: TierAction.MANUAL_REVIEW,
    Tier.GOOD_FIT: TierAction.MANUAL_REVIEW,
    Tier.NOT_READY: TierAction.MANUAL_REVIEW,
}

TIER_DESCRIPTIONS: Dict[Tier, str] = {
    Tier.QUALIFIED: "High Priority - Ready to Buy",
    Tier.HOT: "Strong Fit - Near-Term Opportunity",
    Tier.WARM: "Potential Fit - Mid-Term Nurture",
    Tier.COLD: "Early Stage - Long-Term Nurture",
    Tier.GREAT_FIT: "Great Fit - Ready for a Walkthrough",
    Tier.GOOD_FIT: "Good Fit - Worth a Follow-Up",
    Tier.NOT_READY: "Not Ready Yet - Keep in Touch",
}

_missing = set(Tier) - set(TIER_ACTIONS) | set(Tier) - set(TIER_DESCRIPTIONS)
if _missing:
    raise RuntimeError(f"tiers without action/description: {sorted(t.value for t in _missing)}")


def _coerce_tier(tier: Any) -> Optional[Tier]:
    if isinstance(tier, Tier):
        return tier
    try:
        return Tier(str(tier))
    except ValueError:
        return None


def tier_action(tier: Any) -> TierAction:
    """Unrecognized tiers go to a human."""
    t = _coerce_tier(tier)
    return TIER_ACTIONS[t] if t is not None else TierAction.MANUAL_REVIEW


def tier_description(tier: Any) -> str:
    t = _coerce_tier(tier)
    return TIER_DESCRIPTIONS[t] if t is not None else "Unknown"


@dataclass(frozen=True)
class ScoredResponse:
    question_id: str
    question_number: int
    answer: Any
    points_earned: float = 0


@dataclass(frozen=True)
class ScoreResult:
    total_points: float
    max_possible_points: float
    percentage_score: int
    tier: Tier
    breakdown: Dict[str, float] = field(default_factory=dict)

    @property
    def action(self) -> TierAction:
        return tier_action(self.tier)


@dataclass(frozen=True)
class ContactInfo:
    name: str = ""
    email: str = ""
    company: str = ""
    phone: str = ""
    title: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.name.strip() and self.email.strip())


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


class ScoringEngine:
    def __init__(
        self,
        name: str,
        max_possible_points: float,
        bands: Sequence[Tuple[int, Tier]],
        floor_tier: Tier,
        breakdown: Mapping[str, Iterable[int]],
    ):
        # bands are (min_percentage, tier); checked highest first
        self.name = name
        self.max_possible_points = max_possible_points
        self.bands = sorted(bands, key=lambda b: b[0], reverse=True)
        self.floor_tier = floor_tier
        self.breakdown = {bucket: frozenset(numbers) for bucket, numbers in breakdown.items()}

    def percentage(self, total_points: float) -> int:
        if self.max_possible_points <= 0:
            return 0
        pct = _round_half_up(total_points / self.max_possible_points * 100)
        return max(0, min(100, pct))

    def tier_for(self, percentage: int) -> Tier:
        for threshold, tier in self.bands:
            if percentage >= threshold:
                return tier
        return self.floor_tier

    def score(self, responses: Iterable[ScoredResponse]) -> ScoreResult:
        responses = list(responses)
        total = sum((r.points_earned or 0) for r in responses)
        pct = self.percentage(total)

        buckets: Dict[str, float] = {bucket: 0 for bucket in self.breakdown}
        for r in responses:
            for bucket, numbers in self.breakdown.items():
                if r.question_number in numbers:
                    buckets[bucket] += r.points_earned or 0

        return ScoreResult(
            total_points=total,
            max_possible_points=self.max_possible_points,
            percentage_score=pct,
            tier=self.tier_for(pct),
            breakdown=buckets,
        )

    @classmethod
    def for_questions(cls, questions: Sequence[Any], name: str = "tenant") -> "ScoringEngine":
        """
        Engine for a tenant's own question set. Max points come from the best
        achievable answer to every question; breakdown is grouped by type.
        """
        buckets: Dict[str, List[int]] = {}
        max_points = 0.0
        for q in questions:
            max_points += max_points_for_question(q)
            buckets.setdefault(q.question_type, []).append(q.question_number)
        return cls(
            name=name,
            max_possible_points=max_points,
            bands=PRODUCTION_BANDS,
            floor_tier=Tier.COLD,
            breakdown=buckets,
        )


PRODUCTION_BANDS = ((80, Tier.QUALIFIED), (60, Tier.HOT), (40, Tier.WARM))

PRODUCTION_ENGINE = ScoringEngine(
    name="assessment",
    max_possible_points=699,
    bands=PRODUCTION_BANDS,
    floor_tier=Tier.COLD,
    breakdown={
        "contactInfo": range(1, 4),
        "currentState": range(4, 9),
        "goals": range(9, 12),
        "readiness": range(12, 17),
    },
)

DEMO_ENGINE = ScoringEngine(
    name="demo",
    max_possible_points=92,
    bands=((70, Tier.GREAT_FIT), (40, Tier.GOOD_FIT)),
    floor_tier=Tier.NOT_READY,
    breakdown={
        "volume": (2,),
        "team": (3,),
        "pain": (4,),
        "readiness": (6, 7, 8, 9),
    },
)


def extract_contact_info(responses: Iterable[ScoredResponse]) -> ContactInfo:
    """
    Contact details live in the answer to question 1. A missing or non-mapping
    answer yields an empty ContactInfo; the caller decides whether that is fatal.
    """
    for r in responses:
        if r.question_number != 1:
            continue
        if not isinstance(r.answer, Mapping):
            return ContactInfo()
        a = r.answer
        return ContactInfo(
            name=str(a.get("full_name") or a.get("name") or ""),
            email=str(a.get("email") or ""),
            company=str(a.get("company") or ""),
            phone=str(a.get("phone") or ""),
            title=str(a.get("job_title") or a.get("title") or ""),
        )
    return ContactInfo()


# ---- Tenant quiz points (form layer) ----------------------------------------

def _option_scores(question: Any) -> Dict[str, float]:
    return {str(o.get("value")): float(o.get("score") or 0) for o in (question.options or [])}


def points_for_answer(question: Any, answer: Any) -> float:
    """Points a single answer earns: option score times question weight."""
    weight = float(question.scoring_weight or 0)
    scores = _option_scores(question)
    if question.question_type == "multiple_choice":
        return scores.get(str(answer), 0) * weight
    if question.question_type == "checkbox":
        selected = answer if isinstance(answer, (list, tuple)) else []
        return sum(scores.get(str(v), 0) for v in selected) * weight
    return 0


def max_points_for_question(question: Any) -> float:
    weight = float(question.scoring_weight or 0)
    scores = list(_option_scores(question).values())
    if not scores:
        return 0
    if question.question_type == "multiple_choice":
        return max(scores) * weight
    if question.question_type == "checkbox":
        return sum(scores) * weight
    return 0
