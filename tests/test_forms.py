import pytest

from appscout.forms import AppAnalysisForm, KeywordSearchForm, first_error


class TestKeywordSearchForm:
    def test_defaults(self):
        form = KeywordSearchForm(data={"keywords": " a, b ,, c "})
        assert form.is_valid(), form.errors
        assert form.cleaned_data == {
            "keywords": ["a", "b", "c"],
            "platform": "itunes",
            "country": "us",
            "concurrency": 3,
        }

    def test_explicit_values(self):
        form = KeywordSearchForm(
            data={"keywords": "ai", "platform": "gplay", "country": "DE", "concurrency": "20"}
        )
        assert form.is_valid(), form.errors
        assert form.cleaned_data["platform"] == "gplay"
        assert form.cleaned_data["country"] == "de"
        assert form.cleaned_data["concurrency"] == 20

    @pytest.mark.parametrize("concurrency", ["0", "21", "25", "-1"])
    def test_concurrency_out_of_range(self, concurrency):
        form = KeywordSearchForm(data={"keywords": "ai", "concurrency": concurrency})
        assert not form.is_valid()
        assert first_error(form) == "Concurrency must be between 1 and 20"

    def test_concurrency_not_a_number(self):
        form = KeywordSearchForm(data={"keywords": "ai", "concurrency": "lots"})
        assert not form.is_valid()
        assert first_error(form) == "Concurrency must be an integer."

    def test_missing_keywords(self):
        form = KeywordSearchForm(data={})
        assert not form.is_valid()
        assert first_error(form) == "Please provide keywords after -search"

    def test_only_delimiters(self):
        form = KeywordSearchForm(data={"keywords": " , ,, "})
        assert not form.is_valid()
        assert first_error(form) == "No valid keywords provided"

    def test_unknown_platform(self):
        form = KeywordSearchForm(data={"keywords": "ai", "platform": "amazon"})
        assert not form.is_valid()
        assert "platform" in form.errors

    def test_bad_country(self):
        form = KeywordSearchForm(data={"keywords": "ai", "country": "usa"})
        assert not form.is_valid()
        assert first_error(form) == "Country must be a two-letter code."


class TestAppAnalysisForm:
    def test_valid(self):
        form = AppAnalysisForm(data={"app_id": "310633997"})
        assert form.is_valid(), form.errors
        assert form.cleaned_data["app_id"] == 310633997

    @pytest.mark.parametrize("app_id", ["abc", "0", "-5", "1.5"])
    def test_invalid_app_id(self, app_id):
        form = AppAnalysisForm(data={"app_id": app_id})
        assert not form.is_valid()
        assert first_error(form) == "App ID must be a valid numeric value"

    def test_missing_app_id(self):
        form = AppAnalysisForm(data={})
        assert not form.is_valid()
        assert first_error(form) == "Please provide an app ID"
