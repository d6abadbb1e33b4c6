"""
Text cleanup for provider output.

Grounded generations come back with inline citation markers such as
`[3](https://example.com/a)`. `clean` strips them and repairs the punctuation
they leave behind. The rules run in the order listed in `CLEANUP_RULES`; each
one may rely on the artifacts produced by the rules before it. A pass can
expose a new marker (nested or split citations), so `clean` repeats passes
until the text stops changing.
"""
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .types import Source, UNKNOWN_SOURCE


@dataclass(frozen=True)
class CleanupRule:
    name: str
    pattern: re.Pattern
    replacement: str

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


CLEANUP_RULES: Tuple[CleanupRule, ...] = (
    CleanupRule("citations", re.compile(r"\[\d+\]\((?:[^()\s]|\([^()\s]*\))*\)"), ""),
    CleanupRule("double_commas", re.compile(r",(?:\s*,)+"), ","),
    CleanupRule("whitespace", re.compile(r"\s+"), " "),
    CleanupRule("comma_before_period", re.compile(r",\s*\."), "."),
)


def clean(raw_text: Optional[str]) -> str:
    if not raw_text:
        return ""
    text = raw_text
    while True:
        cleaned = text
        for rule in CLEANUP_RULES:
            cleaned = rule.apply(cleaned)
        cleaned = cleaned.strip()
        if cleaned == text:
            return cleaned
        text = cleaned


def extract_sources(grounding: Optional[Dict[str, Any]]) -> Tuple[List[str], List[Source]]:
    """Pull search queries and cited pages out of grounding metadata.

    Accepts the dict form of the provider's grounding metadata
    (`web_search_queries`, `grounding_chunks[].web.{title,uri}`). Missing metadata
    is normal for ungrounded answers and yields two empty lists.
    """
    if not grounding:
        return [], []

    queries = [q for q in (grounding.get("web_search_queries") or []) if q]

    sources = []
    for chunk in grounding.get("grounding_chunks") or []:
        web = (chunk or {}).get("web") or {}
        sources.append(Source(
            title=web.get("title") or UNKNOWN_SOURCE,
            uri=web.get("uri") or "",
        ))
    return queries, sources
