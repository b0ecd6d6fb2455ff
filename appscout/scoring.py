"""
Keyword scorer: traffic and difficulty for a single keyword.

The scorer is bound to one platform.  It searches that store for the apps
currently ranking for the keyword and derives both scores from the
competitor landscape.  Callers only see KeywordScore; how the numbers are
produced stays inside this module.
"""

import logging
import math

from django.conf import settings

from .exceptions import ServiceError
from .schemas import KeywordScore, Level, Platform, Recommendation, validate_payload
from .services import GooglePlaySearchService, ITunesSearchService

logger = logging.getLogger(__name__)


def _log_interpolate(value: float, bands: list[tuple[float, float]]) -> float:
    """
    Smooth log interpolation between (threshold, score) calibration points.

    Linear from 0 up to the first band, capped at the last band's score.
    """
    if value <= 0:
        return 0
    for i, (threshold, score) in enumerate(bands):
        if value < threshold:
            if i == 0:
                return (value / threshold) * score
            prev_t, prev_s = bands[i - 1]
            ratio = math.log(value / prev_t) / math.log(threshold / prev_t)
            return prev_s + ratio * (score - prev_s)
    return bands[-1][1]


def _median(values: list[float]) -> float:
    ordered = sorted(values)
    n = len(ordered)
    if n == 0:
        return 0
    if n % 2 == 1:
        return ordered[n // 2]
    return (ordered[n // 2 - 1] + ordered[n // 2]) / 2


def _title_matches(competitors: list[dict], keyword: str) -> tuple[int, int]:
    """Return (titles containing all keyword words, titles with the exact phrase)."""
    kw_lower = keyword.lower().strip()
    kw_words = set(kw_lower.split())
    matches = exact = 0
    for c in competitors:
        title = c.get("trackName", "").lower()
        if kw_lower and kw_lower in title:
            matches += 1
            exact += 1
        elif kw_words and all(w in title for w in kw_words):
            matches += 1
    return matches, exact


# --------------------------------------------------------------------------- #
# Traffic (popularity) estimate
# --------------------------------------------------------------------------- #


class PopularityEstimator:
    """
    Estimates keyword search traffic from the competitor landscape.

    Keywords with high search volume attract strong apps: if heavyweight
    players rank for a keyword, users are searching for it.

    Score range: 5–100.

    Signals:
      1. Result count (0–25 pts)
      2. Leader strength (0–30 pts): review counts of the top half
      3. Title match density (0–20 pts)
      4. Market depth (0–10 pts): median review count
      5. Keyword specificity (0 to -28 pts): long-tail queries get less traffic
      6. Exact phrase bonus (0–15 pts)
    """

    LEADER_BANDS = [
        (10, 1), (100, 5), (1_000, 10), (10_000, 17), (100_000, 24), (1_000_000, 30),
    ]
    DEPTH_BANDS = [(10, 0.5), (100, 3), (1_000, 5), (10_000, 8), (50_000, 10)]
    SPECIFICITY = {1: 0, 2: -3, 3: -8, 4: -15, 5: -22}

    def estimate(self, competitors: list[dict], keyword: str) -> int:
        n = len(competitors)
        if n == 0:
            return 0
        word_count = max(1, len(keyword.split()))

        result_score = min(25, n * 2.5)

        top_half = competitors[: max(n // 2, 1)]
        max_reviews = max(c.get("userRatingCount", 0) for c in top_half)
        leader_score = _log_interpolate(max_reviews, self.LEADER_BANDS)

        title_matches, exact_matches = _title_matches(competitors, keyword)
        title_score = min(20, title_matches / n * 40)
        exact_bonus = min(15, exact_matches / n * 50)

        median = _median([c.get("userRatingCount", 0) for c in competitors])
        depth_score = _log_interpolate(median, self.DEPTH_BANDS)

        specificity_penalty = self.SPECIFICITY.get(word_count, -28)

        # 1/1 title matches is an artifact, not demand; full weight at n = 10.
        dampening = min(1.0, n / 10)
        title_score *= dampening
        exact_bonus *= dampening

        total = int(
            result_score
            + leader_score
            + title_score
            + depth_score
            + specificity_penalty
            + exact_bonus
        )
        return max(5, min(100, total))


# --------------------------------------------------------------------------- #
# Difficulty
# --------------------------------------------------------------------------- #


class DifficultyCalculator:
    """
    Keyword difficulty (1–100) from competitor data.

    Weighted sub-scores, each normalized to 0–100:
      - Rating Volume (40%): log-scale of the MEDIAN rating count
      - Dominant Players (30%): per-app log dominance, top half weighted 2×
      - Rating Quality (15%): review-weighted average stars
      - Title Relevance (15%): competitors with the keyword in their title

    A weak #1 app caps the score: if the leader is easy to outrank, the
    keyword is easy regardless of the backfill below it.
    """

    VOLUME_BANDS = [
        (50, 5), (200, 15), (500, 30), (2_000, 50), (5_000, 65),
        (10_000, 78), (25_000, 88), (100_000, 95), (100_001, 100),
    ]
    QUALITY_BANDS = [(0.0, 0), (3.0, 20), (3.5, 35), (4.0, 50), (4.3, 70), (4.5, 85), (5.0, 100)]

    def calculate(self, competitors: list[dict], keyword: str) -> int:
        n = len(competitors)
        if n == 0:
            return 0
        rating_counts = [c.get("userRatingCount", 0) for c in competitors]

        rating_volume = _log_interpolate(_median(rating_counts), self.VOLUME_BANDS)

        log_ceiling = math.log10(10_000_000)
        top_half_size = max(n // 2, 1)
        dominance_total = 0.0
        for i, reviews in enumerate(rating_counts):
            if reviews <= 0:
                continue
            weight = 2.0 if i < top_half_size else 1.0
            dominance_total += min(1.0, math.log10(reviews) / log_ceiling) * weight
        weight_sum = 2.0 * top_half_size + max(n - top_half_size, 0)
        dominant_players = min(100, dominance_total / weight_sum * 100)

        rating_quality = self._rating_quality(competitors)

        title_matches, _ = _title_matches(competitors, keyword)
        title_relevance = min(100, title_matches / n * 100)

        dampening = min(1.0, n / 10)
        total = int(
            rating_volume * 0.40
            + dominant_players * 0.30 * dampening
            + rating_quality * 0.15 * dampening
            + title_relevance * 0.15 * dampening
        )

        leader_reviews = rating_counts[0] if rating_counts else 0
        if n >= 2 and leader_reviews < 1_000:
            leader_cap = int(15 + 35 * math.log10(leader_reviews + 1) / math.log10(1001))
            total = min(total, leader_cap)

        return max(1, min(100, total))

    def _rating_quality(self, competitors: list[dict]) -> float:
        weighted_sum = weight_total = 0.0
        for c in competitors:
            rating = c.get("averageUserRating", 0)
            reviews = c.get("userRatingCount", 0)
            if rating > 0 and reviews > 0:
                w = math.log1p(reviews)
                weighted_sum += rating * w
                weight_total += w
        if weight_total == 0:
            return 0
        avg = weighted_sum / weight_total
        if avg >= 5.0:
            return 100
        for i in range(1, len(self.QUALITY_BANDS)):
            threshold, score = self.QUALITY_BANDS[i]
            if avg < threshold:
                prev_t, prev_s = self.QUALITY_BANDS[i - 1]
                return prev_s + (avg - prev_t) / (threshold - prev_t) * (score - prev_s)
        return 100


# --------------------------------------------------------------------------- #
# Classification
# --------------------------------------------------------------------------- #


def classify_level(score: int) -> Level:
    if score < 20:
        return Level.VERY_LOW
    if score < 40:
        return Level.LOW
    if score < 60:
        return Level.MEDIUM
    if score < 80:
        return Level.HIGH
    return Level.VERY_HIGH


def recommend(traffic: int, difficulty: int) -> Recommendation:
    if traffic >= 60 and difficulty < 40:
        return Recommendation.EXCELLENT
    if traffic >= 40 and difficulty < 60:
        return Recommendation.GOOD
    if traffic >= 20 and difficulty < 70:
        return Recommendation.CONSIDER
    if difficulty >= 70 and traffic >= 40:
        return Recommendation.CHALLENGING
    return Recommendation.AVOID


# --------------------------------------------------------------------------- #
# Scorer capability
# --------------------------------------------------------------------------- #


class KeywordScorer:
    """
    Scores one keyword at a time for a fixed platform and country.

    Construct one per run and pass it to the batch orchestrator; it holds
    no mutable state, so concurrent score() calls are safe.
    """

    COMPETITOR_LIMIT = 25

    def __init__(self, platform=None, country=None, search=None):
        self.platform = Platform(platform or settings.APPSCOUT_PLATFORM)
        self.country = country or settings.APPSCOUT_COUNTRY
        if search is None:
            if self.platform is Platform.GPLAY:
                search = GooglePlaySearchService()
            else:
                search = ITunesSearchService()
        self.search = search
        self.popularity = PopularityEstimator()
        self.difficulty = DifficultyCalculator()

    def __repr__(self):
        return f"KeywordScorer(platform={self.platform.value!r}, country={self.country!r})"

    def score(self, keyword: str) -> KeywordScore:
        competitors = self.search.search_apps(
            keyword, country=self.country, limit=self.COMPETITOR_LIMIT
        )
        if not competitors:
            raise ServiceError(f"No competitor data for '{keyword}' on {self.platform.value}")

        traffic = self.popularity.estimate(competitors, keyword)
        difficulty = self.difficulty.calculate(competitors, keyword)
        logger.debug("Scored '%s': traffic=%s difficulty=%s", keyword, traffic, difficulty)

        return validate_payload(
            KeywordScore,
            {
                "keyword": keyword,
                "traffic_score": traffic,
                "difficulty_score": difficulty,
                "traffic_level": classify_level(traffic),
                "competition_level": classify_level(difficulty),
                "recommendation": recommend(traffic, difficulty),
            },
            source=f"{self.platform.value} scorer",
        )
