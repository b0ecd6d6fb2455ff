import pytest

from .fakes import FakeGenerator, make_app


@pytest.fixture(autouse=True)
def fast_batches(settings):
    settings.APPSCOUT_BATCH_DELAY = 0
    settings.APPSCOUT_SCORER_TIMEOUT = None
    settings.APPSCOUT_CONCURRENCY = 3
    settings.APPSCOUT_MAX_CONCURRENCY = 20
    settings.APPSCOUT_SAMPLE_SIZE = 5
    settings.APPSCOUT_SIMILAR_APPS = 3
    settings.APPSCOUT_PLATFORM = "itunes"
    settings.APPSCOUT_COUNTRY = "us"


@pytest.fixture
def photo_apps():
    return [
        make_app(310633997, "Photo Studio"),
        make_app(2, "Lightroom"),
        make_app(3, "VSCO"),
        make_app(4, "Snapseed"),
    ]


@pytest.fixture
def photo_generator():
    return FakeGenerator(
        {
            "Photo Studio": ["photo editor", "ai photo editor", "photo filters", "collage maker"],
            "Lightroom": ["raw editor", "photo presets"],
            "VSCO": ["film filters"],
            "Snapseed": ["photo retouch", "healing brush"],
        },
        suggestions=["portrait retouch", "photo background remover"],
    )
