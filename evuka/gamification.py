"""Levels, streaks, achievements, daily challenges and reward suggestions."""

from __future__ import annotations

import math
import random
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from .models import DailyChallenge, ReceiptRecord

# Minimum points for levels 2..9; level 10+ adds one level per 2500 points
LEVEL_THRESHOLDS: list[int] = [100, 250, 500, 1000, 2000, 3500, 5000, 7500, 10000]
POINTS_PER_LEVEL_AFTER_10 = 2500

_STREAK_BONUS: list[tuple[int, float]] = [(30, 0.5), (14, 0.3), (7, 0.2), (3, 0.1)]
_LEVEL_BONUS: list[tuple[int, float]] = [(10, 0.5), (7, 0.3), (5, 0.2), (3, 0.1)]

FIRST_OF_DAY_BONUS = 50


@dataclass(frozen=True)
class ChallengeTemplate:
    title: str
    description: str
    points_reward: int


CHALLENGE_TEMPLATES: list[ChallengeTemplate] = [
    ChallengeTemplate("Grocery Run", "Scan a receipt from a grocery store", 50),
    ChallengeTemplate("Big Spender", "Scan a receipt with a total over $50", 75),
    ChallengeTemplate("Early Bird", "Scan a receipt before 10am", 50),
    ChallengeTemplate("Night Owl", "Scan a receipt after 8pm", 50),
    ChallengeTemplate("Weekend Warrior", "Scan 3 receipts over the weekend", 100),
    ChallengeTemplate("Variety Shopper", "Scan receipts from 2 different stores today", 75),
    ChallengeTemplate("Healthy Choices", "Scan a receipt containing fruits or vegetables", 50),
    ChallengeTemplate("Bargain Hunter", "Scan a receipt with at least one discounted item", 60),
    ChallengeTemplate("Local Support", "Scan a receipt from a local business", 80),
    ChallengeTemplate("Quick Scan", "Scan a receipt within 1 hour of purchase", 70),
]


@dataclass(frozen=True)
class UserStats:
    points: int
    level: int
    streak_days: int


@dataclass
class Reward:
    id: str
    title: str
    points_cost: int
    category: str = ""
    description: str = ""
    relevance_score: float = field(default=0.0, compare=False)


DEFAULT_REWARDS: tuple[Reward, ...] = (
    Reward("amazon-5", "$5 Amazon Gift Card", 5000, "Gift Cards",
           "Redeem for a $5 Amazon gift card"),
    Reward("target-10", "$10 Target Gift Card", 10000, "Gift Cards",
           "Redeem for a $10 Target gift card"),
    Reward("walmart-20", "$20 Walmart Gift Card", 20000, "Gift Cards",
           "Redeem for a $20 Walmart gift card"),
    Reward("premium-1m", "Premium Membership - 1 Month", 7500, "Memberships",
           "Upgrade to Premium for 1 month"),
    Reward("charity-5", "Donation to Charity", 3000, "Donations",
           "Donate $5 to a charity of your choice"),
)


def calculate_level(points: int) -> int:
    for level, threshold in enumerate(LEVEL_THRESHOLDS, start=1):
        if points < threshold:
            return level
    return 10 + (points - LEVEL_THRESHOLDS[-1]) // POINTS_PER_LEVEL_AFTER_10


def calculate_multiplier(streak_days: int, level: int) -> float:
    """Points multiplier from streak and level bonuses, each capped at +0.5."""
    multiplier = 1.0
    for min_days, bonus in _STREAK_BONUS:
        if streak_days >= min_days:
            multiplier += bonus
            break
    for min_level, bonus in _LEVEL_BONUS:
        if level >= min_level:
            multiplier += bonus
            break
    return round(multiplier, 1)


def calculate_points_for_receipt(
    total: Decimal | float,
    multiplier: float,
    first_of_day: bool = False,
    promotion: bool = False,
) -> int:
    """Ten points per currency unit with streak, daily and promotion bonuses."""
    points = math.floor(Decimal(str(total)) * 10)
    points = math.floor(points * multiplier)
    if first_of_day:
        points += FIRST_OF_DAY_BONUS
    if promotion:
        points *= 2
    return points


def next_streak(last_activity: date | None, today: date, current: int) -> int:
    """Streak length after activity on ``today``.

    Activity yesterday extends the streak, activity today keeps it and
    anything older (or no activity at all) starts over at 1.
    """
    if last_activity is None:
        return 1
    if last_activity == today:
        return max(current, 1)
    if last_activity == today - timedelta(days=1):
        return current + 1
    return 1


def achievements_for(stats: UserStats) -> list[str]:
    earned = []
    if stats.level >= 5:
        earned.append("level-5")
    if stats.level >= 10:
        earned.append("level-10")
    if stats.streak_days >= 7:
        earned.append("streak-7")
    if stats.streak_days >= 30:
        earned.append("streak-30")
    if stats.points >= 10000:
        earned.append("points-10k")
    return earned


def select_daily_challenges(
    today: date,
    rng: random.Random | None = None,
) -> list[DailyChallenge]:
    """Pick 3 to 5 distinct challenge templates active for the whole of ``today``."""
    rng = rng or random.Random()
    count = rng.randint(3, 5)
    chosen = rng.sample(CHALLENGE_TEMPLATES, count)

    start = datetime.combine(today, time.min)
    end = datetime.combine(today, time(23, 59, 59, 999000))
    return [
        DailyChallenge(
            title=t.title,
            description=t.description,
            points_reward=t.points_reward,
            start_date=start,
            end_date=end,
        )
        for t in chosen
    ]


def recommend_rewards(
    receipts: Sequence[ReceiptRecord],
    rewards: Iterable[Reward],
    limit: int = 3,
    rng: random.Random | None = None,
) -> list[Reward]:
    """Rank rewards by how well they fit recent spending.

    Rewards in one of the user's top three receipt categories score +30,
    rewards naming one of the top three stores +25 and rewards affordable
    from about ten average receipts +15. A random jitter of up to 10 keeps
    the list from going stale.
    """
    rng = rng or random.Random()

    categories = Counter(r.category for r in receipts if r.category)
    stores = Counter(r.store for r in receipts if r.store)
    top_categories = {c for c, _ in categories.most_common(3)}
    top_stores = [s.lower() for s, _ in stores.most_common(3)]

    total_spent = sum((Decimal(r.total) for r in receipts), Decimal(0))
    avg_spending = total_spent / (len(receipts) or 1)

    scored: list[Reward] = []
    for reward in rewards:
        score = 0.0
        if reward.category in top_categories:
            score += 30
        title = reward.title.lower()
        if any(store in title for store in top_stores):
            score += 25
        if reward.points_cost <= avg_spending * 10:
            score += 15
        score += rng.random() * 10
        scored.append(replace(reward, relevance_score=score))

    scored.sort(key=lambda r: r.relevance_score, reverse=True)
    return scored[:limit]
