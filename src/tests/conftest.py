from __future__ import annotations

"""Shared pytest fixtures and test environment defaults."""

import os
import sys
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ["RAG_ANSWERER"] = "extractive"
os.environ["RAG_VECTORSTORE"] = "memory"
os.environ["EMBEDDING_PROVIDER"] = "hash"
os.environ["EMBEDDING_DIMENSION"] = "256"
os.environ["RAG_CHUNK_SIZE"] = "1000"
os.environ["RAG_CHUNK_OVERLAP"] = "200"
os.environ["RAG_CHUNK_UNIT"] = "chars"
os.environ["RAG_URL_TIMEOUT"] = "1"
os.environ["RAG_FILE_MAX_BYTES"] = "4096"
os.environ.setdefault("RAG_UPLOAD_DIR", tempfile.mkdtemp(prefix="rag-uploads-"))
os.environ.pop("OPENAI_API_KEY", None)


class FakePage:
    """Stand-in for a browser page with scripted navigation."""

    def __init__(self, text: str = "", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.visited: list[str] = []

    async def goto(self, url: str, wait_until: str, timeout: float) -> None:
        if self.error is not None:
            raise self.error
        self.visited.append(url)

    async def title(self) -> str:
        return "Example page"

    async def evaluate(self, script: str) -> str:
        return self.text


class FakeBrowser:
    def __init__(self, page: FakePage) -> None:
        self.page = page

    async def new_page(self) -> FakePage:
        return self.page


class FakeLauncher:
    """Browser launcher that counts launches and open sessions."""

    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.launched = 0
        self.open = 0

    def __call__(self):
        return self._session()

    @asynccontextmanager
    async def _session(self):
        self.launched += 1
        self.open += 1
        try:
            yield FakeBrowser(self.page)
        finally:
            self.open -= 1


@pytest.fixture
def make_launcher():
    def factory(text: str = "", error: Exception | None = None) -> FakeLauncher:
        return FakeLauncher(FakePage(text=text, error=error))

    return factory


@pytest.fixture
def anyio_backend():
    return "asyncio"
