"""Leaderboard, member statistics and contribution filtering"""
from typing import Dict, List, Sequence

from daocredit.models.contribution import (
    CategoryCount,
    Contribution,
    ContributionCategory,
    LeaderboardEntry,
    UserStats,
    normalize_address,
)

ALL_CATEGORIES = 'all'

class ContributionScorer:
    """Calculates rankings and statistics from contribution snapshots"""

    def __init__(self, leaderboard_size: int = 10):
        self.leaderboard_size = leaderboard_size

    def verified_totals(self, contributions: Sequence[Contribution]) -> Dict[str, int]:
        """Sum of verified clear scores per submitter"""
        totals: Dict[str, int] = {}
        for contribution in contributions:
            if contribution.verified:
                totals[contribution.submitter] = totals.get(contribution.submitter, 0) + contribution.clear_score
        return totals

    def generate_leaderboard(self, contributions: Sequence[Contribution], limit: int = None) -> List[LeaderboardEntry]:
        """Top submitters by verified total, ties broken by address"""
        limit = self.leaderboard_size if limit is None else limit
        ranked = sorted(self.verified_totals(contributions).items(), key=lambda item: (-item[1], item[0]))
        return [LeaderboardEntry(address=address, score=score) for address, score in ranked[:limit]]

    def calculate_rank(self, contributions: Sequence[Contribution], address: str) -> int:
        """1-based position among all verified submitters, 0 when unranked"""
        address = normalize_address(address)
        ranked = self.generate_leaderboard(contributions, limit=len(contributions))
        for position, entry in enumerate(ranked, start=1):
            if entry.address == address:
                return position
        return 0

    def calculate_user_stats(self, contributions: Sequence[Contribution], address: str) -> UserStats:
        """Contribution counts and average verified score of one member"""
        address = normalize_address(address)
        own = [c for c in contributions if c.submitter == address]
        verified = [c for c in own if c.verified]
        avg = sum(c.clear_score for c in verified) / len(verified) if verified else 0.0

        return UserStats(
            total_contributions=len(own),
            verified_count=len(verified),
            avg_score=avg,
            rank=self.calculate_rank(contributions, address)
        )

def filter_contributions(contributions: Sequence[Contribution], search: str = '',
                         category: str = ALL_CATEGORIES) -> List[Contribution]:
    """Case-insensitive search over name and description, then category filter"""
    term = search.lower()
    matches = []
    for contribution in contributions:
        if term and term not in contribution.name.lower() and term not in contribution.description.lower():
            continue
        if category != ALL_CATEGORIES and contribution.category.label != category:
            continue
        matches.append(contribution)
    return matches

def category_counts(contributions: Sequence[Contribution]) -> List[CategoryCount]:
    """Number of contributions per category, preceded by the total"""
    counts = [CategoryCount(id=ALL_CATEGORIES, name='All Categories', count=len(contributions))]
    for category in ContributionCategory:
        counts.append(CategoryCount(
            id=category.label,
            name=category.label.capitalize(),
            count=sum(1 for c in contributions if c.category == category)
        ))
    return counts
