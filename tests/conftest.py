import os
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

# Keep prompt logging off and the pipeline sequential regardless of the local .env
os.environ["SLIDES_ENV"] = "p"
os.environ["SLIDES_MAX_CONCURRENCY"] = "1"

from app.models.slides import ModelProvider  # noqa: E402
from app.services.vision.common import (  # noqa: E402
    OPERATION_EXPLAIN,
    OPERATION_SUMMARISE,
    PROVIDER_LABELS,
    ProviderErrorKind,
    ProviderResult,
    VisionRouterService,
)

PNG_DATA_URL = "data:image/png;base64,AAAA"


def ok(provider: ModelProvider, text: str) -> ProviderResult:
    return ProviderResult.success(provider, text)


def explain_error(
    provider: ModelProvider, kind: ProviderErrorKind = ProviderErrorKind.NETWORK
) -> ProviderResult:
    return ProviderResult.failure(provider, OPERATION_EXPLAIN, kind, "boom")


def summarise_error(
    provider: ModelProvider, kind: ProviderErrorKind = ProviderErrorKind.UNKNOWN
) -> ProviderResult:
    return ProviderResult.failure(provider, OPERATION_SUMMARISE, kind, "boom")


def make_service(
    provider: ModelProvider,
    explanations: Optional[List[ProviderResult]] = None,
    summaries: Optional[List[ProviderResult]] = None,
) -> MagicMock:
    """Build a vision service double whose calls return the given results in order."""
    service = MagicMock(spec=VisionRouterService)
    service.provider = provider
    service.label = PROVIDER_LABELS[provider]
    service.explain = AsyncMock(side_effect=explanations or [])
    service.summarise = AsyncMock(side_effect=summaries or [])
    return service


@pytest.fixture
def no_backoff(monkeypatch):
    """Make retry backoff instant and record the requested delays."""
    sleep = AsyncMock()
    monkeypatch.setattr("app.services.vision.common.asyncio.sleep", sleep)
    return sleep
