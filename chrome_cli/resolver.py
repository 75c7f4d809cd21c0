"""Target resolution: turn a URL-prefix selector into one target id.

Selection priority:
1. explicit selector (e.g. a command's -t flag)
2. overrides["CHROME_TARGET"]
3. env_target (CHROME_TARGET / global -t, captured at startup)

With a selector, the first page whose URL starts with it (case-insensitive)
wins. Without one, a page already attached to another session is preferred,
then the first page. "First" always means directory order.

A miss is not an exception: the returned Resolution has an empty target_id
and a reason that lists the candidate URLs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .config import TARGET_ENV
from .errors import ChromeCliError
from .targets import BrowsingTarget, TargetDirectory, TargetInfo

logger = logging.getLogger("chrome_cli.resolver")

NO_PAGE_TARGETS = "no page targets"


@dataclass(frozen=True)
class Resolution:
    target_id: str
    reason: str
    selector: str = ""

    @property
    def found(self) -> bool:
        return bool(self.target_id)


def effective_selector(
    selector: str = "", overrides: Mapping[str, str] | None = None, env_target: str = ""
) -> str:
    chosen = (selector or "").strip()
    if not chosen and overrides:
        chosen = (overrides.get(TARGET_ENV) or "").strip()
    if not chosen:
        chosen = (env_target or "").strip()
    return chosen


def match_target_by_selector(pages: Iterable[BrowsingTarget], selector: str) -> str:
    if not selector:
        return ""
    wanted = selector.lower()
    for page in pages:
        if page.url.lower().startswith(wanted):
            return page.id
    return ""


def select_preferred_from_info(pages: list[BrowsingTarget], infos: Iterable[TargetInfo | None]) -> str:
    """First attached page from infos, else first page from infos; both restricted to pages."""
    if not pages:
        return ""
    page_ids = {p.id for p in pages}
    candidates = [i for i in infos if i is not None and i.kind == "page" and i.id in page_ids]
    for info in candidates:
        if info.attached:
            return info.id
    return candidates[0].id if candidates else ""


def resolve_target(
    directory: TargetDirectory,
    selector: str = "",
    overrides: Mapping[str, str] | None = None,
    env_target: str = "",
) -> Resolution:
    """Resolve a target id. Directory fetch errors propagate; misses do not."""
    chosen = effective_selector(selector, overrides, env_target)
    pages = directory.fetch_pages()
    if not pages:
        return Resolution("", NO_PAGE_TARGETS, chosen)

    if chosen:
        target_id = match_target_by_selector(pages, chosen)
        if target_id:
            return Resolution(target_id, f'matched selector "{chosen}"', chosen)
        available = ", ".join(p.url for p in pages)
        return Resolution("", f'no tab URL starts with "{chosen}". Available: {available}', chosen)

    try:
        infos = directory.fetch_target_infos()
    except (ChromeCliError, OSError) as exc:
        logger.info("target enumeration unavailable, using directory order: %s", exc)
        infos = []
    target_id = select_preferred_from_info(pages, infos)
    if target_id:
        return Resolution(target_id, "preferred attached tab")
    return Resolution(pages[0].id, "first page tab")


__all__ = [
    "NO_PAGE_TARGETS",
    "Resolution",
    "effective_selector",
    "match_target_by_selector",
    "resolve_target",
    "select_preferred_from_info",
]
