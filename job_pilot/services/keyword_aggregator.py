from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from job_pilot.constants import BANNED_KEYWORDS, KEYWORD_MAX_LENGTH, KEYWORD_MIN_LENGTH, REMOTE_LOCATION
from job_pilot.models import AccountStatus, UserSettings

logger = logging.getLogger(__name__)

_DISALLOWED_CHARS = re.compile(r"[^a-z0-9 +#./&-]")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class SearchQuery:
    keyword: str
    candidate_locations: list[str] = field(default_factory=list)
    user_count: int = 0


def sanitize_keyword(raw: str) -> Optional[str]:
    """Lower-case, strip characters outside the allow-list and reject junk."""
    if not isinstance(raw, str):
        return None
    keyword = _DISALLOWED_CHARS.sub("", raw.lower())
    keyword = _WHITESPACE.sub(" ", keyword).strip()
    if len(keyword) < KEYWORD_MIN_LENGTH or len(keyword) > KEYWORD_MAX_LENGTH:
        return None
    if keyword in BANNED_KEYWORDS:
        return None
    return keyword


def aggregate_search_queries(db: Session, top_n: Optional[int] = None) -> list[SearchQuery]:
    """Merge every active user's keywords into deduplicated search queries.

    Each keyword carries the union of its requesters' cities and countries plus
    the generic remote token. With ``top_n`` the list is cut to the keywords
    requested by the most distinct users, for sources with a request quota.
    """
    rows = (
        db.query(UserSettings)
        .filter(UserSettings.account_status == AccountStatus.ACTIVE)
        .all()
    )

    locations: dict[str, set[str]] = {}
    requesters: dict[str, set[int]] = {}

    for row in rows:
        if not row.keywords:
            continue
        user_locations = {REMOTE_LOCATION}
        for value in (row.city, row.country):
            if value and value.strip():
                user_locations.add(value.strip().title())

        for raw in row.keywords:
            keyword = sanitize_keyword(raw)
            if keyword is None:
                continue
            locations.setdefault(keyword, {REMOTE_LOCATION}).update(user_locations)
            requesters.setdefault(keyword, set()).add(row.user_id)

    queries = [
        SearchQuery(
            keyword=keyword,
            candidate_locations=sorted(locations[keyword]),
            user_count=len(requesters[keyword]),
        )
        for keyword in locations
    ]
    queries.sort(key=lambda q: (-q.user_count, q.keyword))

    if top_n is not None:
        queries = queries[:top_n]

    logger.info(f"Aggregated {len(queries)} search keywords from {len(rows)} active users")
    return queries
