from typing import List, Optional

from .types import AppOutput, WebSearchResult


def assemble(summary: Optional[str] = None, images: Optional[List[str]] = None, web_search: Optional[WebSearchResult] = None) -> AppOutput:
    """Merge pipeline results into one AppOutput.

    Fields the pipeline did not produce stay `None`. Empty image or source
    lists are dropped as well, so the presentation layer never renders an
    empty section.
    """
    web_search_results = None
    if web_search is not None and web_search.sources:
        web_search_results = tuple(source.display() for source in web_search.sources)

    return AppOutput(
        summary=summary,
        images=tuple(images) if images else None,
        web_search_results=web_search_results,
    )
