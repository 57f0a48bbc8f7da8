"""Fetch one page and print what the classifier extracts from it.

Handy when tuning the classify_page prompt against a specific government page.

Usage:
    python scripts/classify_url.py https://www.dta.gov.au/our-projects/artificial-intelligence
"""

import asyncio
import json
import sys

from policai_pipeline.config import get_settings
from policai_pipeline.llm.classify import LLMContentClassifier
from policai_pipeline.llm.client import LLMClient
from policai_pipeline.log import setup_logging
from policai_pipeline.pipeline.factory import build_repos
from policai_pipeline.retrieval.extract import html_to_text
from policai_pipeline.retrieval.fetch import Fetcher


async def run(url: str):
    settings = get_settings()
    _, policy_repo = build_repos(settings)

    print(f"Fetching {url}...")
    html = await Fetcher().fetch_url(url)
    text = html_to_text(html, url)
    print(f"Extracted {len(text)} chars")

    classifier = LLMContentClassifier(LLMClient())
    output = await classifier.classify(text, url, policy_repo.get_titles())

    print(json.dumps([f.to_json_dict() for f in output.findings], indent=2))
    print(f"{len(output.findings)} findings")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)
    setup_logging()
    asyncio.run(run(sys.argv[1]))
