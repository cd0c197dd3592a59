import asyncio

import pytest


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("MAX_INCLUDE_DEPTH", "HTTP_TIMEOUT", "MAX_RETRIES", "RETRY_DELAY", "HTTP_POOL_SIZE",
                 "MAX_WORKERS", "TARGET_PLATFORM", "LOG_LEVEL", "ALLOW_EMPTY_RESPONSE", "USER_AGENT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def run():
    return asyncio.run

