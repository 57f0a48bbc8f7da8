"""Candidate link discovery on source index pages."""

from dataclasses import dataclass
from typing import List
from urllib.parse import urljoin, urldefrag, urlparse

from bs4 import BeautifulSoup

POLICY_KEYWORDS = (
    "policy",
    "framework",
    "guidance",
    "standard",
    "regulation",
    "strategy",
    "ai",
    "artificial-intelligence",
    "digital",
)


@dataclass
class CandidateLink:
    url: str
    title: str


def is_policy_link(href: str, text: str) -> bool:
    combined = f"{href} {text}".lower()
    return any(kw in combined for kw in POLICY_KEYWORDS)


def extract_candidate_links(html: str, base_url: str, limit: int = 15) -> List[CandidateLink]:
    """
    Returns outbound links whose URL or anchor text mentions a policy keyword,
    in document order, de-duplicated and capped at `limit`.
    """
    soup = BeautifulSoup(html, "html.parser")
    links: List[CandidateLink] = []
    seen = set()

    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        text = anchor.get_text(" ", strip=True)
        if not href or not text:
            continue

        absolute, _ = urldefrag(urljoin(base_url, href))
        if urlparse(absolute).scheme not in ("http", "https"):
            continue
        if absolute in seen or not is_policy_link(href, text):
            continue

        seen.add(absolute)
        links.append(CandidateLink(url=absolute, title=text))
        if len(links) >= limit:
            break

    return links
