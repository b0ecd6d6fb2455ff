"""
Keyword research from the command line.

    python manage.py scout <app_id>
    python manage.py scout -search "keyword1,keyword2" [concurrency]
"""

import json
import logging

from django.core.management.base import BaseCommand, CommandError
from django.template.loader import render_to_string

from appscout import pipeline
from appscout.exceptions import AppScoutError
from appscout.forms import AppAnalysisForm, KeywordSearchForm, first_error
from appscout.generator import KeywordGenerator
from appscout.scoring import KeywordScorer
from appscout.services import AppStoreService

logger = logging.getLogger(__name__)

USAGE = """Please provide arguments
Usage:
  manage.py scout <appId>                        - Analyze an app
  manage.py scout -search "keyword1,keyword2" [concurrency] - Search keywords

Examples:
  manage.py scout 310633997
  manage.py scout -search "AI photo editor,AI image editor,photo editor,photo editing"
  manage.py scout -search "keywords..." 5"""


class Command(BaseCommand):
    help = "Analyze an App Store app or a list of keywords for traffic and difficulty."

    def add_arguments(self, parser):
        parser.add_argument(
            "target",
            nargs="?",
            help="App ID to analyze, or the concurrency when -search is given.",
        )
        parser.add_argument(
            "-search",
            dest="search",
            metavar="KEYWORDS",
            help="Comma-separated keywords to score.",
        )
        parser.add_argument("--platform", help="itunes or gplay (default: APPSCOUT_PLATFORM).")
        parser.add_argument("--country", help="Two-letter store country (default: APPSCOUT_COUNTRY).")
        parser.add_argument(
            "--json",
            action="store_true",
            dest="as_json",
            help="Print results as JSON instead of a table.",
        )

    def handle(self, *args, **options):
        if options["search"] is not None:
            self.search(options)
        elif options["target"] is not None:
            self.analyze(options)
        else:
            raise CommandError(USAGE)

    def search(self, options):
        form = KeywordSearchForm(
            data={
                "keywords": options["search"],
                "concurrency": options["target"],
                "platform": options["platform"],
                "country": options["country"],
            }
        )
        if not form.is_valid():
            raise CommandError(first_error(form))
        data = form.cleaned_data

        scorer = KeywordScorer(platform=data["platform"], country=data["country"])
        try:
            run = pipeline.search_keywords(
                ",".join(data["keywords"]), scorer, width=data["concurrency"]
            )
        except AppScoutError as e:
            logger.error("Search failed: %s %s", e.message, e.details)
            raise CommandError(f"Search failed: {e}") from e

        if options["as_json"]:
            self.stdout.write(json.dumps([r.as_dict() for r in run.results], indent=2))
            return
        self.stdout.write(
            render_to_string(
                "appscout/keyword_report.txt",
                {"run": run, "duration": f"{run.duration:.2f}"},
            )
        )

    def analyze(self, options):
        form = AppAnalysisForm(
            data={
                "app_id": options["target"],
                "platform": options["platform"],
                "country": options["country"],
            }
        )
        if not form.is_valid():
            raise CommandError(first_error(form))
        data = form.cleaned_data

        try:
            generator = KeywordGenerator.from_settings()
            analysis = pipeline.analyze_app(
                data["app_id"],
                store=AppStoreService(country=data["country"]),
                generator=generator,
                scorer=KeywordScorer(platform=data["platform"], country=data["country"]),
                width=data["concurrency"],
            )
        except AppScoutError as e:
            logger.error("Analysis failed: %s %s", e.message, e.details)
            raise CommandError(f"Analysis failed: {e}") from e

        if options["as_json"]:
            self.stdout.write(
                json.dumps(
                    {
                        "app": analysis.app.model_dump(),
                        "similarApps": [a.model_dump() for a in analysis.similar_apps],
                        "mainKeywords": analysis.main_keywords,
                        "similarKeywords": analysis.similar_keywords,
                        "results": [r.as_dict() for r in analysis.run.results],
                    },
                    indent=2,
                )
            )
            return
        self.stdout.write(render_to_string("appscout/app_report.txt", {"analysis": analysis}))
