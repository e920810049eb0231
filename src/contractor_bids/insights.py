"""AI business insights over an owner's bidding history.

Stats come from stored bid totals; the model turns them into an assessment
and ranked actions. When generation keeps failing a rule-based assessment
of the same stats is returned instead.
"""
from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Callable, Sequence

from pydantic import BaseModel, Field
from tenacity import RetryError, Retrying, before_sleep_log, stop_after_attempt, wait_incrementing

from .analytics import HIGH_MARGIN, HIGH_REJECTION_RATE, LOW_MARGIN
from .models.bid import Bid, BidStatus
from .text_generation import TextGenerator

logger = logging.getLogger(__name__)

GENERATION_ATTEMPTS = 3
TARGET_WIN_RATE = 30.0

BENCHMARK_PROMPT = (
    "Summarize current industry benchmarks for service contractors in a few sentences: "
    "typical bid win rates, typical gross profit margins on accepted jobs, and common pricing mistakes."
)


class Level(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


class BidStats(BaseModel):
    total_bids: int = 0
    accepted_count: int = 0
    rejected_count: int = 0
    average_bid_value: float = 0.0
    average_margin: float = 0.0
    win_rate: float = 0.0


class ActionPriority(BaseModel):
    action: str
    impact: Level = Level.medium
    effort: Level = Level.medium


class BusinessInsights(BaseModel):
    overall_score: float = Field(default=0.0, ge=0, le=100)
    performance_assessment: str = ""
    optimization_opportunities: list[str] = Field(default_factory=list)
    bidding_strategy_recommendations: list[str] = Field(default_factory=list)
    risk_factors: list[str] = Field(default_factory=list)
    action_priorities: list[ActionPriority] = Field(default_factory=list)


class InsightsReport(BaseModel):
    stats: BidStats
    insights: BusinessInsights | None = None
    used_fallback: bool = False


_LEVEL = {"type": "string", "enum": [level.value for level in Level]}
_STRINGS = {"type": "array", "items": {"type": "string"}}

INSIGHTS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "overall_score": {"type": "number", "minimum": 0, "maximum": 100},
        "performance_assessment": {"type": "string"},
        "optimization_opportunities": _STRINGS,
        "bidding_strategy_recommendations": _STRINGS,
        "risk_factors": _STRINGS,
        "action_priorities": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"action": {"type": "string"}, "impact": _LEVEL, "effort": _LEVEL},
            },
        },
    },
}


def bid_stats(bids: Sequence[Bid]) -> BidStats:
    """Averages are over all bids, not only accepted ones."""
    total = len(bids)
    if not total:
        return BidStats()
    accepted = sum(1 for bid in bids if bid.status is BidStatus.accepted)
    return BidStats(
        total_bids=total,
        accepted_count=accepted,
        rejected_count=sum(1 for bid in bids if bid.status is BidStatus.rejected),
        average_bid_value=sum(bid.total_bid_amount or 0.0 for bid in bids) / total,
        average_margin=sum(bid.profit_margin_percentage or 0.0 for bid in bids) / total,
        win_rate=accepted / total * 100,
    )


def build_insights_prompt(stats: BidStats, benchmarks: str = "") -> str:
    prompt = (
        "Analyze this company's job bidding performance and provide strategic insights:\n\n"
        "Bidding Overview:\n"
        f"- Total Bids Submitted: {stats.total_bids}\n"
        f"- Win Rate: {stats.win_rate:.1f}%\n"
        f"- Accepted Bids: {stats.accepted_count}\n"
        f"- Rejected Bids: {stats.rejected_count}\n"
        f"- Average Bid Value: ${stats.average_bid_value:.2f}\n"
        f"- Average Profit Margin on Bids: {stats.average_margin:.1f}%\n\n"
    )
    if benchmarks.strip():
        prompt += f"Industry context:\n{benchmarks.strip()}\n\n"
    return prompt + (
        "Provide comprehensive business insights for this service company based on their bidding data. Include:\n"
        "1. Overall performance assessment and a score out of 100.\n"
        "2. Specific opportunities to improve win rate and profitability.\n"
        "3. Bidding strategy recommendations (e.g., pricing adjustments, proposal improvements).\n"
        "4. Risk assessment based on bidding patterns (e.g., margins too low, bidding on wrong projects).\n"
        "5. Actionable priorities, ranked by impact and effort."
    )


def fallback_insights(stats: BidStats) -> BusinessInsights:
    margin_score = min(max(stats.average_margin, 0.0), HIGH_MARGIN) / HIGH_MARGIN * 50
    win_score = min(stats.win_rate, 100.0) / 2
    rejection_rate = stats.rejected_count / stats.total_bids * 100 if stats.total_bids else 0.0

    opportunities: list[str] = []
    recommendations: list[str] = []
    risks: list[str] = []
    priorities: list[ActionPriority] = []

    if stats.average_margin < LOW_MARGIN:
        opportunities.append("Raise markup on new bids to bring margins above 15%.")
        risks.append(f"Average margin of {stats.average_margin:.1f}% leaves little room for overruns.")
        priorities.append(ActionPriority(action="Review markup on open bids", impact=Level.high, effort=Level.low))
    if stats.win_rate < TARGET_WIN_RATE:
        opportunities.append("Follow up on sent proposals within a week to lift the win rate.")
        recommendations.append("Focus bidding on project types you have won before.")
        priorities.append(ActionPriority(action="Follow up on sent proposals", impact=Level.medium, effort=Level.low))
    if rejection_rate > HIGH_REJECTION_RATE:
        risks.append(f"{rejection_rate:.0f}% of bids were rejected.")
        recommendations.append("Ask rejected clients for feedback on price and scope.")
        priorities.append(ActionPriority(action="Collect feedback on rejected bids", impact=Level.medium, effort=Level.medium))
    if not recommendations:
        recommendations.append("Keep pricing consistent with your rate catalog.")

    return BusinessInsights(
        overall_score=round(margin_score + win_score),
        performance_assessment=(
            f"{stats.total_bids} bids with a {stats.win_rate:.1f}% win rate "
            f"and an average margin of {stats.average_margin:.1f}%."
        ),
        optimization_opportunities=opportunities,
        bidding_strategy_recommendations=recommendations,
        risk_factors=risks,
        action_priorities=priorities,
    )


class InsightsService:
    def __init__(
        self,
        generator: TextGenerator | None = None,
        *,
        attempts: int = GENERATION_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._generator = generator
        self._attempts = attempts
        self._sleep = sleep

    def analyze(self, bids: Sequence[Bid]) -> InsightsReport:
        stats = bid_stats(bids)
        if not stats.total_bids:
            return InsightsReport(stats=stats)
        if self._generator is None:
            return InsightsReport(stats=stats, insights=fallback_insights(stats), used_fallback=True)

        try:
            insights = self._generate(stats)
        except RetryError as exc:
            logger.warning(
                "Insight generation failed, using rule-based insights",
                exc_info=exc.last_attempt.exception(),
                extra={"attempts": self._attempts},
            )
            return InsightsReport(stats=stats, insights=fallback_insights(stats), used_fallback=True)
        return InsightsReport(stats=stats, insights=insights)

    def _benchmarks(self) -> str:
        try:
            return self._generator.generate_text(BENCHMARK_PROMPT, use_external_knowledge=True)
        except Exception:
            logger.warning("Industry benchmark lookup failed", exc_info=True)
            return ""

    def _generate(self, stats: BidStats) -> BusinessInsights:
        retrying = Retrying(
            stop=stop_after_attempt(self._attempts),
            wait=wait_incrementing(start=1, increment=1),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        prompt = build_insights_prompt(stats, self._benchmarks())
        generator = self._generator

        def attempt() -> BusinessInsights:
            return BusinessInsights.model_validate(generator.generate_json(prompt, schema=INSIGHTS_SCHEMA))

        return retrying(attempt)


__all__ = [
    "ActionPriority",
    "BidStats",
    "BusinessInsights",
    "INSIGHTS_SCHEMA",
    "InsightsReport",
    "InsightsService",
    "Level",
    "bid_stats",
    "build_insights_prompt",
    "fallback_insights",
]
