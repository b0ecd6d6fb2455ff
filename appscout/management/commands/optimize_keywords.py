import json
import logging

from django.core.management.base import BaseCommand, CommandError
from django.template.loader import render_to_string

from appscout import pipeline
from appscout.exceptions import AppScoutError
from appscout.forms import AppAnalysisForm, first_error
from appscout.generator import KeywordGenerator
from appscout.scoring import KeywordScorer
from appscout.services import AppStoreService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = (
        "Generate keywords for an app, score the first N, then ask Claude for "
        "alternatives with a better traffic/difficulty balance."
    )

    def add_arguments(self, parser):
        parser.add_argument("app_id", help="Numeric App Store id.")
        parser.add_argument(
            "--analyze",
            type=int,
            default=10,
            metavar="N",
            help="How many generated keywords to score (default: 10).",
        )
        parser.add_argument("--concurrency", help="Keywords scored per batch.")
        parser.add_argument("--platform", help="itunes or gplay (default: APPSCOUT_PLATFORM).")
        parser.add_argument("--country", help="Two-letter store country (default: APPSCOUT_COUNTRY).")
        parser.add_argument("--json", action="store_true", dest="as_json")

    def handle(self, *args, **options):
        if options["analyze"] < 1:
            raise CommandError("--analyze must be at least 1")
        form = AppAnalysisForm(
            data={
                "app_id": options["app_id"],
                "concurrency": options["concurrency"],
                "platform": options["platform"],
                "country": options["country"],
            }
        )
        if not form.is_valid():
            raise CommandError(first_error(form))
        data = form.cleaned_data

        try:
            optimization = pipeline.optimize_keywords(
                data["app_id"],
                store=AppStoreService(country=data["country"]),
                generator=KeywordGenerator.from_settings(),
                scorer=KeywordScorer(platform=data["platform"], country=data["country"]),
                keywords_to_analyze=options["analyze"],
                width=data["concurrency"],
            )
        except AppScoutError as e:
            logger.error("Optimization workflow failed: %s %s", e.message, e.details)
            raise CommandError(f"Optimization workflow failed: {e}") from e

        if options["as_json"]:
            best = optimization.best_keyword
            self.stdout.write(
                json.dumps(
                    {
                        "app": optimization.app.model_dump(),
                        "initialKeywords": optimization.initial_keywords,
                        "results": [r.as_dict() for r in optimization.run.results],
                        "suggestions": optimization.suggestions,
                        "bestKeyword": best.as_dict() if best else None,
                        "recommendations": optimization.recommendation_counts,
                    },
                    indent=2,
                )
            )
            return
        self.stdout.write(
            render_to_string("appscout/optimization_report.txt", {"optimization": optimization})
        )
