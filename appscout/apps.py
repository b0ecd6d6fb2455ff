from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .schemas import Platform


class AppScoutConfig(AppConfig):
    name = "appscout"
    verbose_name = "App Store Keyword Research"

    def ready(self):
        # Fail at startup rather than in the middle of a run
        try:
            Platform(settings.APPSCOUT_PLATFORM)
        except ValueError:
            raise ImproperlyConfigured(
                f"APPSCOUT_PLATFORM must be one of {[p.value for p in Platform]}, "
                f"got {settings.APPSCOUT_PLATFORM!r}"
            ) from None
        if not 1 <= settings.APPSCOUT_CONCURRENCY <= settings.APPSCOUT_MAX_CONCURRENCY:
            raise ImproperlyConfigured(
                f"APPSCOUT_CONCURRENCY must be between 1 and {settings.APPSCOUT_MAX_CONCURRENCY}"
            )
