from fastapi import Request

from digest.services.jobs import SummarizationOrchestrator
from digest.services.search import SemanticScholarClient


def get_orchestrator(request: Request) -> SummarizationOrchestrator:
    return request.app.state.orchestrator


def get_search_client(request: Request) -> SemanticScholarClient:
    return request.app.state.search_client
