"""Content classification for crawled pages.

The pipeline only depends on the ContentClassifier protocol. The LLM-backed
implementation never lets a malformed model response escape: anything that does
not parse degrades to "no findings from this page". Transport and API errors
still raise so the research stage can record them.
"""

import json
import re
from typing import Any, List, Optional, Protocol

from pydantic import ValidationError

from .client import LLMClient
from .prompts import load_prompt
from ..schemas.classifier import ClassifierOutput, RawFinding
from ..config import Settings, get_settings
from ..log import get_logger

logger = get_logger("classifier")

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class ContentClassifier(Protocol):
    async def classify(
        self,
        page_text: str,
        source_url: str,
        existing_titles: List[str],
        page_title: str = "",
    ) -> ClassifierOutput:
        ...


def parse_classifier_response(text: Optional[str]) -> ClassifierOutput:
    """
    Parses model output into findings. Invalid findings are dropped one by one;
    an unparseable response yields an empty list.
    """
    if not text:
        return ClassifierOutput()

    match = _JSON_OBJECT_RE.search(text)
    if not match:
        logger.warning("Classifier response contained no JSON object")
        return ClassifierOutput()

    try:
        payload: Any = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning(f"Classifier response is not valid JSON: {e}")
        return ClassifierOutput()

    raw_items = payload.get("findings") if isinstance(payload, dict) else None
    if not isinstance(raw_items, list):
        return ClassifierOutput()

    findings = []
    for item in raw_items:
        try:
            findings.append(RawFinding.model_validate(item))
        except ValidationError as e:
            logger.debug(f"Dropping malformed finding: {e.errors()[0]['msg']}")
    return ClassifierOutput(findings=findings)


class LLMContentClassifier:
    def __init__(self, client: LLMClient, model: Optional[str] = None, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.client = client
        self.model = model or settings.MODEL_CLASSIFIER
        self.content_chars = settings.CLASSIFIER_CONTENT_CHARS
        self.max_titles = settings.MAX_EXISTING_TITLES

    def build_prompt(self, page_text: str, source_url: str, existing_titles: List[str], page_title: str = "") -> str:
        template = load_prompt("classify_page")
        titles = "\n".join(f"- {t}" for t in existing_titles[: self.max_titles]) or "- (none)"
        return template.format(
            source_url=source_url,
            page_title=page_title or source_url,
            content=page_text[: self.content_chars],
            existing_titles=titles,
        )

    async def classify(
        self,
        page_text: str,
        source_url: str,
        existing_titles: List[str],
        page_title: str = "",
    ) -> ClassifierOutput:
        prompt = self.build_prompt(page_text, source_url, existing_titles, page_title)
        text = await self.client.run_json(prompt, model=self.model)
        return parse_classifier_response(text)
