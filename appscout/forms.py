from django import forms
from django.conf import settings

from .batch import normalize_keywords
from .schemas import Platform

PLATFORM_CHOICES = [
    (Platform.ITUNES.value, "Apple App Store"),
    (Platform.GPLAY.value, "Google Play"),
]


class StoreForm(forms.Form):
    """Fields shared by every command that talks to a store."""

    platform = forms.ChoiceField(choices=PLATFORM_CHOICES, required=False)
    country = forms.RegexField(
        regex=r"^[A-Za-z]{2}$",
        required=False,
        error_messages={"invalid": "Country must be a two-letter code."},
    )
    concurrency = forms.IntegerField(
        required=False,
        error_messages={"invalid": "Concurrency must be an integer."},
    )

    def clean_platform(self):
        return self.cleaned_data.get("platform") or settings.APPSCOUT_PLATFORM

    def clean_country(self):
        return (self.cleaned_data.get("country") or settings.APPSCOUT_COUNTRY).lower()

    def clean_concurrency(self):
        value = self.cleaned_data.get("concurrency")
        if value is None:
            return settings.APPSCOUT_CONCURRENCY
        if not 1 <= value <= settings.APPSCOUT_MAX_CONCURRENCY:
            raise forms.ValidationError(
                f"Concurrency must be between 1 and {settings.APPSCOUT_MAX_CONCURRENCY}"
            )
        return value


class KeywordSearchForm(StoreForm):
    """Comma-separated keywords for batch analysis."""

    keywords = forms.CharField(
        strip=False,
        help_text="Enter one or more keywords, separated by commas.",
        error_messages={"required": "Please provide keywords after -search"},
    )

    def clean_keywords(self):
        keywords = normalize_keywords(self.cleaned_data["keywords"])
        if not keywords:
            raise forms.ValidationError("No valid keywords provided")
        return keywords


class AppAnalysisForm(StoreForm):
    """A positive numeric App Store id."""

    app_id = forms.IntegerField(
        min_value=1,
        error_messages={
            "required": "Please provide an app ID",
            "invalid": "App ID must be a valid numeric value",
            "min_value": "App ID must be a valid numeric value",
        },
    )


def first_error(form: forms.Form) -> str:
    """Flatten a bound form's errors into one operator-facing line."""
    for errors in form.errors.values():
        if errors:
            return errors[0]
    return "Invalid arguments"
