import os
import httpx
import pytest

from helpers import ENDPOINT, FakeRepository


# `blog.config` calls `load_dotenv()` on import; by setting env vars here
# (before test modules import `blog`), dotenv will not override them.


def _setdefault_env(name: str, value: str) -> None:
    if os.environ.get(name) in (None, ""):
        os.environ[name] = value


_setdefault_env("QUART_PRISMIC_API_ENDPOINT", ENDPOINT)


@pytest.fixture
def repository():
    return FakeRepository()


@pytest.fixture
def transport(repository):
    return httpx.MockTransport(repository.handler)
