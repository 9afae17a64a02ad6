from typing import Optional

import pytest

from digest.services.jobs import JobRegistry, SummarizationOrchestrator
from fakes import FakeExtractor, FakeSummarizer


@pytest.fixture
def registry() -> JobRegistry:
    return JobRegistry(retention_sec=3600, max_records=100)


@pytest.fixture
def make_orchestrator(registry: JobRegistry):
    def factory(
        extractor: Optional[FakeExtractor] = None,
        summarizer: Optional[FakeSummarizer] = None,
        workers: int = 2,
    ) -> SummarizationOrchestrator:
        return SummarizationOrchestrator(
            registry,
            extractor or FakeExtractor(),
            summarizer or FakeSummarizer(),
            workers=workers,
        )

    return factory
