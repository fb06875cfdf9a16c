"""Favored-protocol vs best-competitor comparison.

Score = clamp(1 + advantage_term + liquidity_term, 1, 5)

    advantage (pp)   term        favored/competitor TVL   term
    > 2              +2          > 0.8                    +1
    > 1              +1.5        > 0.5                    +0.5
    > 0.5            +1          otherwise                 0
    > 0              +0.5
    otherwise         0

A competitor with zero TVL is not a meaningful benchmark and gets the top
liquidity tier.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from yield_tracker.models import Opportunity, OpportunityStats, YieldRecord
from yield_tracker.protocols import same_protocol
from yield_tracker.services.aggregator import Aggregator
from yield_tracker.tokens import SupportedToken

logger = logging.getLogger(__name__)

MIN_SCORE = 1.0
MAX_SCORE = 5.0

ADVANTAGE_TIERS = ((2.0, 2.0), (1.0, 1.5), (0.5, 1.0), (0.0, 0.5))
LIQUIDITY_TIERS = ((0.8, 1.0), (0.5, 0.5))


def _advantage_term(advantage: float) -> float:
    for threshold, points in ADVANTAGE_TIERS:
        if advantage > threshold:
            return points
    return 0.0


def _liquidity_term(favored_tvl: float, competitor_tvl: float) -> float:
    if competitor_tvl <= 0:
        return LIQUIDITY_TIERS[0][1]
    ratio = favored_tvl / competitor_tvl
    for threshold, points in LIQUIDITY_TIERS:
        if ratio > threshold:
            return points
    return 0.0


def calculate_score(advantage: float, favored_tvl: float, competitor_tvl: float) -> float:
    score = MIN_SCORE + _advantage_term(advantage) + _liquidity_term(favored_tvl, competitor_tvl)
    return min(MAX_SCORE, max(MIN_SCORE, score))


def _best(records: Iterable[YieldRecord]) -> Optional[YieldRecord]:
    best: Optional[YieldRecord] = None
    for r in records:
        if best is None or r.apy > best.apy:
            best = r
    return best


def build_opportunities(
    records: Sequence[YieldRecord],
    favored_protocol: str,
    tokens: Iterable[SupportedToken] = SupportedToken,
) -> List[Opportunity]:
    opportunities: List[Opportunity] = []
    for token in tokens:
        token_records = [r for r in records if r.token == token]
        favored = _best(r for r in token_records if same_protocol(r.protocol, favored_protocol))
        if favored is None:
            continue
        competitor = _best(r for r in token_records if not same_protocol(r.protocol, favored_protocol))
        if competitor is None:
            continue

        advantage = favored.apy - competitor.apy
        opportunities.append(
            Opportunity(
                token=token,
                favored_protocol=favored.protocol,
                favored_apy=favored.apy,
                best_competitor_protocol=competitor.protocol,
                best_competitor_apy=competitor.apy,
                advantage=advantage,
                score=calculate_score(advantage, favored.tvl, competitor.tvl),
                tvl_difference=favored.tvl - competitor.tvl,
            )
        )
    opportunities.sort(key=lambda o: o.advantage, reverse=True)
    return opportunities


def summarize(opportunities: Sequence[Opportunity]) -> OpportunityStats:
    leading = [o for o in opportunities if o.advantage > 0]
    return OpportunityStats(
        total_opportunities=len(opportunities),
        favored_advantages=len(leading),
        average_advantage=(sum(o.advantage for o in leading) / len(leading)) if leading else 0.0,
        best_advantage=opportunities[0].advantage if opportunities else 0.0,
    )


class OpportunityRanker:
    def __init__(self, aggregator: Aggregator, favored_protocol: str):
        self.aggregator = aggregator
        self.favored_protocol = favored_protocol

    async def get_best_opportunities(self) -> List[Opportunity]:
        records = await self.aggregator.get_all_yields()
        opportunities = build_opportunities(records, self.favored_protocol)
        logger.debug(f"{len(opportunities)} opportunities for {self.favored_protocol}")
        return opportunities
