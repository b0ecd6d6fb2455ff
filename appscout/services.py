"""
Store clients: app metadata, similar apps and competitor search.

iTunes Lookup/Search are public JSON APIs; similar apps come from the
"You Might Also Like" shelf of the App Store web page.  Google Play search
goes through google-play-scraper.  All calls are made from the operator's
machine with no authentication.
"""

import logging
import re

import google_play_scraper as gps
import requests
from bs4 import BeautifulSoup
from django.conf import settings

from .exceptions import AppNotFound, NetworkError, ServiceError
from .schemas import AppMetadata, SimilarApp, validate_payload

logger = logging.getLogger(__name__)

APP_ID_RE = re.compile(r"/id(\d+)")
SIMILAR_SHELF_RE = re.compile(r"You Might Also Like|Similar Apps", re.IGNORECASE)


# --------------------------------------------------------------------------- #
# iTunes Search API
# --------------------------------------------------------------------------- #


class ITunesSearchService:
    """
    Searches the public iTunes Search API for competitor apps.

    No authentication required. Calls are made from the user's local network.
    """

    SEARCH_URL = "https://itunes.apple.com/search"
    LOOKUP_URL = "https://itunes.apple.com/lookup"

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout if timeout is not None else settings.APPSCOUT_HTTP_TIMEOUT

    def _get_json(self, url: str, params: dict) -> dict:
        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise NetworkError(f"Request to {url} failed", details=str(e)) from e
        try:
            data = response.json()
        except ValueError as e:
            raise ServiceError(f"Invalid JSON from {url}", details=str(e)) from e
        if not isinstance(data, dict):
            raise ServiceError(f"Unexpected payload from {url}")
        return data

    def lookup_by_id(self, track_id: int, country: str = "us") -> dict:
        """
        Look up a single app by its iTunes trackId.

        Returns the raw iTunes record; raises AppNotFound when there is none.
        """
        data = self._get_json(self.LOOKUP_URL, {"id": track_id, "country": country})
        results = data.get("results") or []
        if not results:
            raise AppNotFound(f"No App Store app with id {track_id} ({country})")
        return results[0]

    def search_apps(
        self, keyword: str, country: str = "us", limit: int = 25
    ) -> list[dict]:
        """
        Search for iOS apps matching a keyword.

        Args:
            keyword: The search term.
            country: Two-letter country code (default: us).
            limit: Max results to return (default: 25).

        Returns:
            List of competitor dicts in ranking order.
        """
        data = self._get_json(
            self.SEARCH_URL,
            {
                "term": keyword,
                "country": country,
                "entity": "software",
                "limit": limit,
            },
        )
        return [self.parse_app(result) for result in data.get("results", [])]

    @staticmethod
    def parse_app(result: dict) -> dict:
        """Parse an iTunes API result into a standardized competitor dict."""
        return {
            "trackId": result.get("trackId"),
            "trackName": result.get("trackName", ""),
            "averageUserRating": result.get("averageUserRating", 0) or 0,
            "userRatingCount": result.get("userRatingCount", 0) or 0,
            "releaseDate": result.get("releaseDate", ""),
            "primaryGenreName": result.get("primaryGenreName", ""),
            "sellerName": result.get("sellerName", ""),
        }


# --------------------------------------------------------------------------- #
# Google Play search
# --------------------------------------------------------------------------- #


class GooglePlaySearchService:
    """Competitor search on Google Play, normalized to the iTunes dict shape."""

    def __init__(self, lang: str = "en"):
        self.lang = lang

    def search_apps(
        self, keyword: str, country: str = "us", limit: int = 25
    ) -> list[dict]:
        try:
            results = gps.search(keyword, lang=self.lang, country=country, n_hits=limit)
        except Exception as e:
            raise NetworkError(f"Google Play search failed for '{keyword}'", details=str(e)) from e
        return [self.parse_app(r) for r in results or [] if isinstance(r, dict)]

    @staticmethod
    def parse_app(result: dict) -> dict:
        # Search hits carry no rating count; installs stand in for it.
        ratings = result.get("ratings") or _parse_installs(result.get("installs")) // 100
        return {
            "trackId": result.get("appId"),
            "trackName": result.get("title") or "",
            "averageUserRating": result.get("score") or 0,
            "userRatingCount": ratings,
            "releaseDate": "",
            "primaryGenreName": result.get("genre") or "",
            "sellerName": result.get("developer") or "",
        }


def _parse_installs(value) -> int:
    """'1,000,000+' -> 1000000"""
    digits = re.sub(r"[^\d]", "", str(value or ""))
    return int(digits) if digits else 0


# --------------------------------------------------------------------------- #
# App Store metadata & similar apps
# --------------------------------------------------------------------------- #


class AppStoreService:
    """
    App data source for the analyze-one-app pipeline.

    fetch_app() uses the iTunes Lookup API; fetch_similar() reads the
    "You Might Also Like" shelf from the public App Store page.
    """

    PAGE_URL = "https://apps.apple.com/{country}/app/id{app_id}"
    USER_AGENT = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/122.0.0.0 Safari/537.36"
    )

    def __init__(self, itunes: ITunesSearchService | None = None, country: str | None = None):
        self.itunes = itunes or ITunesSearchService()
        self.country = country or settings.APPSCOUT_COUNTRY

    def fetch_app(self, app_id: int) -> AppMetadata:
        """Full metadata for one app.  Raises AppNotFound / NetworkError."""
        record = self.itunes.lookup_by_id(app_id, country=self.country)
        screenshots = record.get("screenshotUrls") or record.get("ipadScreenshotUrls") or []
        payload = {
            "app_id": record.get("trackId") or app_id,
            "title": record.get("trackName", ""),
            "description": record.get("description", ""),
            "developer": record.get("sellerName") or record.get("artistName", ""),
            "genre": record.get("primaryGenreName", ""),
            "url": record.get("trackViewUrl", ""),
            "screenshots": screenshots,
        }
        return validate_payload(AppMetadata, payload, source=f"iTunes lookup {app_id}")

    def fetch_similar(self, app_id: int) -> list[SimilarApp]:
        """Similar apps in App Store order, without duplicates or the app itself."""
        url = self.PAGE_URL.format(country=self.country, app_id=app_id)
        try:
            response = requests.get(
                url,
                headers={"User-Agent": self.USER_AGENT},
                timeout=self.itunes.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise NetworkError(f"App Store page fetch failed for {app_id}", details=str(e)) from e
        return parse_similar_apps(response.text, exclude_id=app_id)


def parse_similar_apps(html: str, exclude_id: int | None = None) -> list[SimilarApp]:
    """Extract the "You Might Also Like" shelf from an App Store page."""
    soup = BeautifulSoup(html, "html.parser")
    header = soup.find(
        lambda tag: tag.name in ("h2", "h3") and SIMILAR_SHELF_RE.search(tag.get_text())
    )
    if header is None:
        logger.info("No similar-apps shelf found on App Store page.")
        return []
    section = header.find_parent("section") or header.parent

    similar: list[SimilarApp] = []
    seen = {exclude_id} if exclude_id else set()
    for link in section.find_all("a", href=True):
        match = APP_ID_RE.search(link["href"])
        if not match:
            continue
        similar_id = int(match.group(1))
        if similar_id in seen:
            continue
        seen.add(similar_id)
        title_tag = link.select_one(".we-lockup__title")
        title = title_tag.get_text(strip=True) if title_tag else link.get("aria-label", "")
        similar.append(SimilarApp(app_id=similar_id, title=title.strip(), url=link["href"]))
    return similar
