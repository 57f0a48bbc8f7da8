from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
import yaml
from pathlib import Path
from typing import List, Optional

from .schemas.sources import Source

class Settings(BaseSettings):
    OPENAI_API_KEY: Optional[str] = Field(None, description="OpenAI API Key")
    MODEL_CLASSIFIER: str = "gpt-4o"
    LOG_LEVEL: str = "INFO"

    # Storage
    PIPELINE_DATA_DIR: str = Field("data/pipeline", description="Directory holding runs, findings and verifications")
    POLICY_DATA_DIR: str = Field("data", description="Directory holding the policy dataset")
    SOURCES_FILE: str = Field("data/sources.yaml", description="Optional source registry override")

    # Crawling
    USER_AGENT: str = "Policai/1.0 (Australian AI Policy Tracker)"
    HTTP_TIMEOUT: float = 15.0
    FETCH_INTERVAL_SECONDS: float = 2.0
    CLASSIFY_INTERVAL_SECONDS: float = 1.0
    SOURCE_INTERVAL_SECONDS: float = 3.0
    MAX_LINKS_PER_SOURCE: int = 15
    MAX_PAGES_PER_SOURCE: int = 5

    # Classification
    RELEVANCE_FLOOR: float = 0.5
    SOURCE_CONTENT_CHARS: int = 2000
    CLASSIFIER_CONTENT_CHARS: int = 6000
    MAX_EXISTING_TITLES: int = 20

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

@lru_cache()
def get_settings() -> Settings:
    return Settings()

DEFAULT_SOURCES = [
    Source(id="dta", name="DTA AI Policy",
           url="https://www.dta.gov.au/our-projects/artificial-intelligence"),
    Source(id="diser", name="DISER AI Strategy",
           url="https://www.industry.gov.au/science-technology-and-innovation/technology/artificial-intelligence"),
    Source(id="csiro", name="CSIRO Data61",
           url="https://www.csiro.au/en/research/technology-space/ai"),
    Source(id="ahrc", name="AHRC AI Ethics",
           url="https://humanrights.gov.au/our-work/technology-and-human-rights"),
    Source(id="oaic", name="OAIC AI Guidance",
           url="https://www.oaic.gov.au/privacy/guidance-and-advice/artificial-intelligence-and-privacy"),
    Source(id="nsw", name="NSW Digital AI",
           url="https://www.digital.nsw.gov.au/policy/artificial-intelligence"),
    Source(id="vic", name="Victorian AI Strategy",
           url="https://www.vic.gov.au/artificial-intelligence-strategy"),
    Source(id="accc", name="ACCC Digital Platforms",
           url="https://www.accc.gov.au/focus-areas/digital-platforms-and-services"),
]

def load_sources(path: Optional[str] = None) -> List[Source]:
    """
    Returns the source registry. A YAML list at SOURCES_FILE replaces the defaults.
    """
    path = Path(path or get_settings().SOURCES_FILE)
    if not path.exists():
        return list(DEFAULT_SOURCES)
    with open(path, "r") as f:
        data = yaml.safe_load(f) or []
    return [Source.model_validate(item) for item in data]
