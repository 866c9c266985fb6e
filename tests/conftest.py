"""Pytest configuration and fixtures."""

import logging

import pytest
from httpx import AsyncClient, ASGITransport

from groqbot.config import settings
from groqbot.dependencies import get_http_client, get_token_counter
from tests.fakes.fake_upstream import FakeUpstream

logger = logging.getLogger(__name__)

TEST_API_HOST = "https://api.groq.com/openai"
TEST_SERVER_KEY = "gsk_server_side_test_key"


# Pytest hook to show test duration after each test completes
@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Add test duration to terminal output after each test."""
    outcome = yield
    report = outcome.get_result()

    # Only show timing for test call phase (not setup/teardown)
    if report.when == "call":
        duration = getattr(report, "duration", 0)
        if duration > 0:
            report.sections.append(("Test Duration", f"{duration:.2f}s"))

    return report


def count_words(text: str) -> int:
    """Deterministic token counter: one token per whitespace-separated word."""
    return len(text.split())


@pytest.fixture(autouse=True)
def upstream_settings(monkeypatch):
    """Pin upstream settings so tests do not depend on the local environment."""
    monkeypatch.setattr(settings, "openai_api_key", TEST_SERVER_KEY)
    monkeypatch.setattr(settings, "openai_api_host", TEST_API_HOST)
    monkeypatch.setattr(settings, "openai_organization", "")
    yield


@pytest.fixture
def word_counter():
    return count_words


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    """Fresh fake upstream provider for each test."""
    return FakeUpstream()


@pytest.fixture
async def client(fake_upstream):
    """Async test client with lifespan support.

    The app's upstream HTTP client is replaced with one answered by
    fake_upstream, and the tokenizer with a word counter.
    """
    from groqbot.main import app

    upstream_client = fake_upstream.client()

    # Manually trigger lifespan startup
    async with app.router.lifespan_context(app):
        app.dependency_overrides[get_http_client] = lambda: upstream_client
        app.dependency_overrides[get_token_counter] = lambda: count_words

        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac

        app.dependency_overrides.clear()

    await upstream_client.aclose()
