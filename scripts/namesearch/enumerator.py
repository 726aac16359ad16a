"""Sequential walk over the directory's paginated name listings."""

from __future__ import annotations

import logging
from typing import Iterator, Optional, Protocol

from scripts.namesearch.directory import NameKind

logger = logging.getLogger("namesearch.enumerator")

PROGRESS_EVERY_PAGES = 20


class PageSource(Protocol):
    def get_page(self, kind: NameKind, page: int) -> list[str]: ...


def iter_names(
    source: PageSource,
    kind: NameKind,
    page_cap: Optional[int] = None,
) -> Iterator[str]:
    """Yield names page by page until an empty page or the page cap.

    Each page is requested only after the previous one has been consumed.
    Fetch errors propagate to the caller.
    """
    page = 0
    while page_cap is None or page < page_cap:
        if page % PROGRESS_EVERY_PAGES == 0:
            logger.info("Fetched %d %s pages...", page, kind.value, extra={"kind": kind.value})
        names = source.get_page(kind, page)
        if not names:
            return
        yield from names
        page += 1


def list_names(
    source: PageSource,
    kind: NameKind,
    page_cap: Optional[int] = None,
) -> list[str]:
    """All names of one kind, in page order, duplicates kept."""
    return list(iter_names(source, kind, page_cap))
