import re

import trafilatura
from bs4 import BeautifulSoup

_WS_RE = re.compile(r"\s+")

def strip_markup(html: str) -> str:
    """
    Drops scripts, styles and tags and collapses whitespace.
    """
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return _WS_RE.sub(" ", soup.get_text(" ")).strip()

def html_to_text(html: str, url: str) -> str:
    """
    Extracts main text from HTML.
    Falls back to a plain markup strip when trafilatura finds no main content
    (index pages and very short pages often have none).
    """
    if not html:
        return ""
    extracted = trafilatura.extract(html, include_comments=False, include_tables=True, url=url)
    if extracted and extracted.strip():
        return extracted.strip()
    return strip_markup(html)
