"""
Use cases that sequence the collaborators.

analyze_app:       app data -> similar apps -> Claude keywords -> sampled ASO scores
search_keywords:   comma-separated keywords -> batched ASO scores, ranked
optimize_keywords: Claude keywords -> ASO scores -> Claude follow-up suggestions

Failures on the mandatory backbone (the main app's metadata, the main app's
keyword generation) propagate.  Failures on secondary items (a similar app,
one keyword's score) are logged and isolated.
"""

import logging
import random
from collections import Counter
from dataclasses import dataclass, field

from django.conf import settings

from .batch import AnalysisRun, KeywordResult, analyze_keywords, normalize_keywords, sample_keywords
from .exceptions import AppScoutError, InputValidationError
from .schemas import AppMetadata, Recommendation

logger = logging.getLogger(__name__)


@dataclass
class AppAnalysis:
    app: AppMetadata
    similar_apps: list[AppMetadata]
    main_keywords: list[str]
    similar_keywords: list[str]
    run: AnalysisRun

    @property
    def all_keywords(self) -> list[str]:
        return self.main_keywords + self.similar_keywords


@dataclass
class Optimization:
    app: AppMetadata
    initial_keywords: list[str]
    run: AnalysisRun
    suggestions: list[str] = field(default_factory=list)

    @property
    def best_keyword(self) -> KeywordResult | None:
        """Highest traffic minus difficulty; the first one wins ties."""
        best = None
        for result in self.run.results:
            if not result.ok:
                continue
            if best is None or (
                result.traffic_score - result.difficulty_score
                > best.traffic_score - best.difficulty_score
            ):
                best = result
        return best

    @property
    def recommendation_counts(self) -> dict[str, int]:
        counts = Counter(r.recommendation for r in self.run.results)
        return {
            rec.value: counts.get(rec.value, 0)
            for rec in Recommendation
            if rec is not Recommendation.ANALYSIS_FAILED
        }


def parse_app_id(value) -> int:
    try:
        app_id = int(str(value).strip())
    except (TypeError, ValueError):
        raise InputValidationError("App ID must be a valid numeric value") from None
    if app_id <= 0:
        raise InputValidationError("App ID must be a valid numeric value")
    return app_id


def collect_app_data(app_id: int, store) -> tuple[AppMetadata, list[AppMetadata]]:
    """
    Main app metadata plus up to APPSCOUT_SIMILAR_APPS similar apps.

    The main lookup propagates errors; each similar-app fetch is isolated.
    """
    logger.info("Starting analysis for app ID: %s", app_id)
    app = store.fetch_app(app_id)

    try:
        similar_ids = store.fetch_similar(app_id)[: settings.APPSCOUT_SIMILAR_APPS]
    except AppScoutError as e:
        logger.warning("Could not load similar apps for %s: %s", app_id, e)
        similar_ids = []

    similar_apps = []
    for similar in similar_ids:
        try:
            similar_apps.append(store.fetch_app(similar.app_id))
        except Exception as e:
            logger.warning("Failed to fetch data for similar app %s: %s", similar.app_id, e)

    logger.info("Fetched %s and %d similar apps", app.title, len(similar_apps))
    return app, similar_apps


def generate_app_keywords(
    app: AppMetadata, similar_apps: list[AppMetadata], generator
) -> tuple[list[str], list[str]]:
    main_keywords = generator.generate(app)

    similar_keywords: list[str] = []
    for similar in similar_apps:
        try:
            similar_keywords.extend(generator.generate(similar))
        except Exception as e:
            logger.warning("Failed to generate keywords for %s: %s", similar.title, e)
    return main_keywords, similar_keywords


def analyze_app(
    app_id,
    store,
    generator,
    scorer,
    width: int | None = None,
    rng: random.Random | None = None,
    **batch_options,
) -> AppAnalysis:
    """Full analyze-one-app flow; scores a random sample of the keywords."""
    app_id = parse_app_id(app_id)
    app, similar_apps = collect_app_data(app_id, store)
    main_keywords, similar_keywords = generate_app_keywords(app, similar_apps, generator)

    pool = list(dict.fromkeys(main_keywords + similar_keywords))
    sample = sample_keywords(pool, rng=rng)
    logger.info("Analyzing %d random keywords with ASO...", len(sample))
    run = analyze_keywords(sample, scorer, width=width, **_batch_defaults(batch_options))
    return AppAnalysis(
        app=app,
        similar_apps=similar_apps,
        main_keywords=main_keywords,
        similar_keywords=similar_keywords,
        run=run,
    )


def search_keywords(raw: str, scorer, width: int | None = None, **batch_options) -> AnalysisRun:
    """Score comma-separated keywords; raises InputValidationError if none remain."""
    keywords = normalize_keywords(raw)
    if not keywords:
        raise InputValidationError("No valid keywords provided")
    logger.info(
        "Searching and analyzing %d keywords on %s", len(keywords), scorer.platform.value
    )
    return analyze_keywords(keywords, scorer, width=width, **_batch_defaults(batch_options))


def optimize_keywords(
    app_id,
    store,
    generator,
    scorer,
    keywords_to_analyze: int = 10,
    width: int | None = None,
    **batch_options,
) -> Optimization:
    """Generate keywords, score the first N, then ask for better alternatives."""
    app = store.fetch_app(parse_app_id(app_id))
    initial = generator.generate(app)
    selected = initial[:keywords_to_analyze]
    logger.info("Selected %d keywords for ASO analysis", len(selected))

    run = analyze_keywords(selected, scorer, width=width, **_batch_defaults(batch_options))
    suggestions = generator.suggest(app, run.results)
    return Optimization(app=app, initial_keywords=initial, run=run, suggestions=suggestions)


def _batch_defaults(options: dict) -> dict:
    options = dict(options)
    options.setdefault("call_timeout", settings.APPSCOUT_SCORER_TIMEOUT)
    return options
