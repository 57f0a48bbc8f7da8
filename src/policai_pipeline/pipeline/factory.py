"""Wires the pipeline from settings with its real collaborators."""

from typing import Optional

from ..config import Settings, get_settings, load_sources
from ..llm.classify import ContentClassifier, LLMContentClassifier
from ..llm.client import LLMClient
from ..retrieval.fetch import Fetcher
from ..store.json_store import JsonStore
from ..store.repo import PipelineRepo, PolicyRepo
from .research import ResearchStage
from .run import Pipeline


def build_repos(settings: Optional[Settings] = None):
    settings = settings or get_settings()
    return (
        PipelineRepo(JsonStore(settings.PIPELINE_DATA_DIR)),
        PolicyRepo(JsonStore(settings.POLICY_DATA_DIR)),
    )


def build_pipeline(
    settings: Optional[Settings] = None,
    classifier: Optional[ContentClassifier] = None,
    fetcher: Optional[Fetcher] = None,
) -> Pipeline:
    settings = settings or get_settings()
    repo, policy_repo = build_repos(settings)
    if classifier is None:
        classifier = LLMContentClassifier(
            LLMClient(api_key=settings.OPENAI_API_KEY), model=settings.MODEL_CLASSIFIER, settings=settings
        )

    research = ResearchStage(
        sources=load_sources(settings.SOURCES_FILE),
        fetcher=fetcher or Fetcher(user_agent=settings.USER_AGENT, timeout=settings.HTTP_TIMEOUT),
        classifier=classifier,
        repo=repo,
        settings=settings,
    )
    return Pipeline(research=research, repo=repo, policy_repo=policy_repo)
