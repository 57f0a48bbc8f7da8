import pytest
from pathlib import Path
from typing import Dict, List, Optional, Union

from policai_pipeline.pipeline.research import ResearchStage
from policai_pipeline.pipeline.run import Pipeline
from policai_pipeline.retrieval.rate_limit import RateLimiter
from policai_pipeline.schemas.classifier import ClassifierOutput, RawFinding
from policai_pipeline.schemas.pipeline import FindingStatus, ResearchFinding
from policai_pipeline.schemas.sources import Source
from policai_pipeline.store.json_store import JsonStore
from policai_pipeline.store.repo import PipelineRepo, PolicyRepo


class FakeFetcher:
    """Serves canned HTML per URL. Values that are exceptions are raised instead."""

    def __init__(self, pages: Optional[Dict[str, Union[str, Exception]]] = None):
        self.pages = pages or {}
        self.calls: List[str] = []

    async def fetch_url(self, url: str) -> str:
        self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise RuntimeError(f"HTTP 404 for {url}")
        if isinstance(page, Exception):
            raise page
        return page


class FakeClassifier:
    """Returns canned findings per page URL; exceptions are raised, unknown URLs yield none."""

    def __init__(self, responses: Optional[Dict[str, Union[List[dict], Exception]]] = None):
        self.responses = responses or {}
        self.calls: List[dict] = []

    async def classify(self, page_text, source_url, existing_titles, page_title=""):
        self.calls.append({"url": source_url, "text": page_text, "titles": list(existing_titles)})
        response = self.responses.get(source_url, [])
        if isinstance(response, Exception):
            raise response
        return ClassifierOutput(findings=[RawFinding.model_validate(r) for r in response])


@pytest.fixture
def pipeline_repo(tmp_path: Path) -> PipelineRepo:
    return PipelineRepo(JsonStore(str(tmp_path / "pipeline")))


@pytest.fixture
def policy_repo(tmp_path: Path) -> PolicyRepo:
    return PolicyRepo(JsonStore(str(tmp_path / "public")))


@pytest.fixture
def no_wait():
    """Zero-interval limiters so tests never sleep."""
    return dict(
        page_limiter=RateLimiter(0),
        classify_limiter=RateLimiter(0),
        source_limiter=RateLimiter(0),
    )


@pytest.fixture
def make_finding():
    counter = {"n": 0}

    def _make(**overrides) -> ResearchFinding:
        counter["n"] += 1
        data = dict(
            id=f"finding-run-test-{counter['n']}",
            pipeline_run_id="run-test",
            title=f"Finding {counter['n']}",
            summary="A sufficiently long summary of an AI policy finding.",
            source_url=f"https://www.example.gov.au/page-{counter['n']}",
            source_content="Source text",
            relevance_score=0.8,
            suggested_type="framework",
            suggested_jurisdiction="federal",
            tags=[],
            agencies=["DTA"],
            key_dates=["2024-09-01"],
            is_new_policy=True,
            status=FindingStatus.DISCOVERED,
        )
        data.update(overrides)
        return ResearchFinding(**data)

    return _make


@pytest.fixture
def build_test_pipeline(pipeline_repo, policy_repo, no_wait):
    """
    Returns a factory producing a Pipeline over temp stores with fake network
    collaborators.
    """
    def _build(sources: List[Source], fetcher: FakeFetcher, classifier: FakeClassifier) -> Pipeline:
        research = ResearchStage(
            sources=sources,
            fetcher=fetcher,
            classifier=classifier,
            repo=pipeline_repo,
            **no_wait,
        )
        return Pipeline(research=research, repo=pipeline_repo, policy_repo=policy_repo)

    return _build


@pytest.fixture
def make_fetcher():
    return FakeFetcher


@pytest.fixture
def make_classifier():
    return FakeClassifier
