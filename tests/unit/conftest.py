import os
from pathlib import Path
from typing import AsyncGenerator
from typing import Callable
from typing import Generator

import dotenv
import httpx
import pytest
import pytest_asyncio

from forge_oss.auth import StaticTokenAuthenticator
from forge_oss.config import Config
from forge_oss.config import get_config
from tests.unit.mocks.mock_oss_api import CHUNK_SIZE
from tests.unit.mocks.mock_oss_api import MockOssApi


@pytest.fixture(scope="session", autouse=True)
def _load_test_env() -> Generator[None, None, None]:
    """Load test environment variables from an optional local env file."""
    project_root = Path(__file__).parents[2]
    dotenv.load_dotenv(project_root / ".env.test-local", override=True)
    os.environ["ENVIRONMENT"] = "test"
    yield


@pytest.fixture
def config() -> Config:
    cfg = get_config()
    cfg.chunk_size_bytes = CHUNK_SIZE
    cfg.max_parts_per_batch = 25
    cfg.retry_attempts = 3
    cfg.retry_interval_seconds = 0.0
    return cfg


@pytest.fixture
def mock_oss() -> MockOssApi:
    return MockOssApi()


@pytest_asyncio.fixture
async def http_client(mock_oss: MockOssApi) -> AsyncGenerator[httpx.AsyncClient, None]:
    client = mock_oss.client()
    yield client
    await client.aclose()


@pytest.fixture
def authenticator() -> StaticTokenAuthenticator:
    return StaticTokenAuthenticator("token-abc")


def sequential_bytes(size: int) -> bytes:
    """Deterministic content where every offset is distinguishable from its neighbours' chunks."""
    pattern = bytes(range(251))
    return (pattern * (size // len(pattern) + 1))[:size]


@pytest.fixture
def make_file(tmp_path: Path) -> Callable[[int], tuple[Path, bytes]]:
    def _make(size: int, name: str = "payload.bin") -> tuple[Path, bytes]:
        data = sequential_bytes(size)
        path = tmp_path / name
        path.write_bytes(data)
        return path, data

    return _make
