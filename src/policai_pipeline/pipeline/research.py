"""Research stage: crawl the source registry and collect candidate findings.

Work is strictly sequential. One source, one page fetch and one classifier call
are in flight at a time, and every request first waits on its rate limiter.
A failure on any page or source is recorded in `errors` and the crawl moves on.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urlparse

from ..config import Settings, get_settings
from ..llm.classify import ContentClassifier
from ..log import get_logger
from ..retrieval.extract import html_to_text
from ..retrieval.fetch import Fetcher
from ..retrieval.links import extract_candidate_links
from ..retrieval.rate_limit import RateLimiter
from ..schemas.classifier import RawFinding
from ..schemas.pipeline import FindingStatus, ResearchFinding
from ..schemas.sources import Source
from ..store.repo import PipelineRepo

logger = get_logger("research")

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


@dataclass
class ScrapedPage:
    url: str
    title: str
    content: str
    source_id: str


@dataclass
class ResearchResult:
    findings: List[ResearchFinding]
    sources_scanned: List[str]
    errors: List[str] = field(default_factory=list)


def normalize_title(title: str) -> str:
    return _NON_ALNUM_RE.sub("", title.lower())


def deduplicate_findings(findings: List[ResearchFinding]) -> List[ResearchFinding]:
    """
    Keeps one finding per normalized title: the highest relevance score wins,
    ties go to the first seen. Output follows first-seen order of each title.
    """
    seen: Dict[str, ResearchFinding] = {}
    for finding in findings:
        key = normalize_title(finding.title)
        existing = seen.get(key)
        if existing is None or finding.relevance_score > existing.relevance_score:
            seen[key] = finding
    return list(seen.values())


class ResearchStage:
    def __init__(
        self,
        sources: List[Source],
        fetcher: Fetcher,
        classifier: ContentClassifier,
        repo: PipelineRepo,
        page_limiter: Optional[RateLimiter] = None,
        classify_limiter: Optional[RateLimiter] = None,
        source_limiter: Optional[RateLimiter] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.sources = sources
        self.fetcher = fetcher
        self.classifier = classifier
        self.repo = repo
        self.page_limiter = page_limiter or RateLimiter(settings.FETCH_INTERVAL_SECONDS)
        self.classify_limiter = classify_limiter or RateLimiter(settings.CLASSIFY_INTERVAL_SECONDS)
        self.source_limiter = source_limiter or RateLimiter(settings.SOURCE_INTERVAL_SECONDS)
        self.max_links = settings.MAX_LINKS_PER_SOURCE
        self.max_pages = settings.MAX_PAGES_PER_SOURCE
        self.relevance_floor = settings.RELEVANCE_FLOOR
        self.content_chars = settings.SOURCE_CONTENT_CHARS

    async def _fetch(self, url: str) -> str:
        await self.page_limiter.acquire(urlparse(url).netloc)
        return await self.fetcher.fetch_url(url)

    async def _collect_pages(self, source: Source, errors: List[str]) -> List[ScrapedPage]:
        """Fetches the source's root page and up to max_pages candidate links from it."""
        try:
            root_html = await self._fetch(source.url)
        except Exception as e:
            msg = f"Failed to fetch source page {source.url}: {e}"
            logger.error(f"[{source.id}] {msg}")
            errors.append(msg)
            return []

        links = extract_candidate_links(root_html, source.url, limit=self.max_links)
        logger.info(f"[{source.id}] Found {len(links)} candidate links")

        pages: List[ScrapedPage] = []
        root_page = self._to_page(source.url, source.name, root_html, source, errors)
        if root_page is not None:
            pages.append(root_page)

        for link in links[: self.max_pages]:
            if link.url == source.url:
                continue
            try:
                html = await self._fetch(link.url)
            except Exception as e:
                msg = f"Failed to fetch {link.url}: {e}"
                logger.error(f"[{source.id}] {msg}")
                errors.append(msg)
                continue
            page = self._to_page(link.url, link.title, html, source, errors)
            if page is not None:
                pages.append(page)

        return pages

    def _to_page(self, url: str, title: str, html: str, source: Source,
                 errors: List[str]) -> Optional[ScrapedPage]:
        try:
            content = html_to_text(html, url)
        except Exception as e:
            msg = f"Failed to extract text from {url}: {e}"
            logger.error(f"[{source.id}] {msg}")
            errors.append(msg)
            return None
        return ScrapedPage(url=url, title=title, content=content, source_id=source.id)

    def _to_finding(self, raw: RawFinding, page: ScrapedPage, run_id: str, seq: int,
                    existing_policy_ids: Dict[str, str]) -> ResearchFinding:
        existing_id = None
        if raw.existing_policy_title:
            existing_id = existing_policy_ids.get(raw.existing_policy_title.strip().lower())
        return ResearchFinding(
            id=f"finding-{run_id}-{seq}",
            pipeline_run_id=run_id,
            title=raw.title,
            summary=raw.summary,
            source_url=page.url,
            source_content=page.content[: self.content_chars],
            relevance_score=raw.relevance_score,
            suggested_type=raw.suggested_type,
            suggested_jurisdiction=raw.suggested_jurisdiction,
            tags=raw.tags,
            agencies=raw.agencies,
            key_dates=raw.key_dates,
            related_topics=raw.related_topics,
            is_new_policy=raw.is_new_policy,
            existing_policy_id=existing_id,
            change_description=raw.change_description,
            status=FindingStatus.DISCOVERED,
        )

    async def run(
        self,
        run_id: str,
        existing_policy_titles: List[str],
        existing_policy_ids: Optional[Dict[str, str]] = None,
    ) -> ResearchResult:
        """
        existing_policy_ids maps lowercased policy titles to ids; it lets a finding
        that names an existing policy carry that policy's id.
        """
        existing_policy_ids = existing_policy_ids or {}
        all_findings: List[ResearchFinding] = []
        sources_scanned: List[str] = []
        errors: List[str] = []
        counter = 0

        for source in self.sources:
            await self.source_limiter.acquire()
            try:
                logger.info(f"Scanning: {source.name} ({source.url})")
                sources_scanned.append(source.id)
                pages = await self._collect_pages(source, errors)

                for page in pages:
                    if not page.content:
                        continue
                    try:
                        await self.classify_limiter.acquire()
                        output = await self.classifier.classify(
                            page.content, page.url, existing_policy_titles, page_title=page.title
                        )
                    except Exception as e:
                        msg = f"Analysis failed for {page.url}: {e}"
                        logger.error(f"[{source.id}] {msg}")
                        errors.append(msg)
                        continue

                    for raw in output.findings:
                        if raw.relevance_score < self.relevance_floor:
                            continue
                        counter += 1
                        all_findings.append(self._to_finding(raw, page, run_id, counter, existing_policy_ids))
            except Exception as e:
                msg = f"Failed to scan {source.name}: {e}"
                logger.error(msg)
                errors.append(msg)

        unique = deduplicate_findings(all_findings)
        self.repo.save_findings(unique)

        logger.info(
            f"Research complete. {len(unique)} unique findings from {len(sources_scanned)} sources "
            f"({len(errors)} errors)"
        )
        return ResearchResult(findings=unique, sources_scanned=sources_scanned, errors=errors)
