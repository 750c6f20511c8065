from __future__ import annotations

import logging
import re
import time
from collections.abc import Sequence

from ..models.column import ColumnSchema
from ..models.result import ErrorKind, Result
from ..models.row import GridRow
from ..models.search import NavigationDirection, SearchCriteria, SearchMatch, SearchResult
from .coercion import display_text

logger = logging.getLogger(__name__)

"""Text search over grid rows with a navigation cursor.

A new search replaces the previous result and moves the cursor to the first
match. Navigation clamps at both ends.
"""

__all__ = [
    "SearchEngine",
]


def _build_matcher(criteria: SearchCriteria) -> Result[re.Pattern[str]]:
    flags = 0 if criteria.case_sensitive else re.IGNORECASE
    body = criteria.text if criteria.use_regex else re.escape(criteria.text)
    if criteria.whole_word:
        body = rf"\b(?:{body})\b"
    try:
        return Result.success(re.compile(body, flags))
    except re.error as e:
        return Result.failure(f"invalid search pattern: {e}", ErrorKind.INVALID_ARGUMENT, cause=e)


class SearchEngine:
    def __init__(self) -> None:
        self.result: SearchResult | None = None
        self.position: int = -1  # -1 = 結果なし

    @property
    def current_match(self) -> SearchMatch | None:
        if self.result is None or not 0 <= self.position < self.result.match_count:
            return None
        return self.result.matches[self.position]

    def search(
        self,
        rows: Sequence[GridRow],
        schema: ColumnSchema,
        criteria: SearchCriteria,
        visible_indices: Sequence[int] | None = None,
    ) -> Result[SearchResult]:
        if criteria is None:
            return Result.failure("search criteria must not be None", ErrorKind.NULL_INPUT)
        if not criteria.text:
            return Result.failure("search text must not be empty", ErrorKind.INVALID_ARGUMENT)
        matcher = _build_matcher(criteria)
        if matcher.is_failure:
            return matcher  # type: ignore[return-value]
        pattern = matcher.value

        if criteria.columns is None:
            columns = list(schema.data_columns)
        else:
            columns = []
            for name in criteria.columns:
                col = schema.get(name)
                if col is None:
                    return Result.failure(f"unknown column: {name}", ErrorKind.INVALID_ARGUMENT)
                columns.append(col)

        started = time.perf_counter()
        indices = visible_indices if (criteria.only_visible_rows and visible_indices is not None) \
            else range(len(rows))
        matches: list[SearchMatch] = []
        truncated = False
        for i in indices:
            row = rows[i]
            for col in columns:
                value = row.data.get(col.name)
                if pattern.search(display_text(value, col)) is None:
                    continue
                matches.append(SearchMatch(i, col.name, value))
                if criteria.max_results is not None and len(matches) >= criteria.max_results:
                    truncated = True
                    break
            if truncated:
                break

        result = SearchResult(
            criteria=criteria,
            matches=tuple(matches),
            elapsed_seconds=time.perf_counter() - started,
            truncated=truncated,
        )
        self.result = result
        self.position = 0 if matches else -1
        logger.debug("search text=%r matches=%d", criteria.text, len(matches))
        return Result.success(result)

    def refresh(
        self,
        rows: Sequence[GridRow],
        schema: ColumnSchema,
        visible_indices: Sequence[int] | None = None,
    ) -> None:
        """Re-run the active search after rows changed, keeping the cursor in bounds."""
        if self.result is None:
            return
        position = self.position
        refreshed = self.search(rows, schema, self.result.criteria, visible_indices)
        if refreshed.is_failure:
            self.clear()
            return
        count = refreshed.value.match_count
        self.position = min(max(position, 0), count - 1) if count else -1

    def navigate(self, direction: NavigationDirection) -> Result[SearchMatch]:
        if self.result is None or not self.result.has_matches:
            return Result.failure("no search matches to navigate", ErrorKind.INVALID_ARGUMENT)
        last = self.result.match_count - 1
        if direction is NavigationDirection.FIRST:
            self.position = 0
        elif direction is NavigationDirection.LAST:
            self.position = last
        elif direction is NavigationDirection.NEXT:
            self.position = min(self.position + 1, last)
        else:
            self.position = max(self.position - 1, 0)
        return Result.success(self.result.matches[self.position])

    def clear(self) -> None:
        self.result = None
        self.position = -1
