"""
Raw-table deduplication.

Rows are grouped on the exact (activity_name, provider_name) pair, no
normalization. In every group with more than one row the most recent
import survives and the rest are deleted. A failed delete is logged and
counted; it never stops the remaining groups.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple
import logging

from market_intel.db.repositories import RawActivityRepository

logger = logging.getLogger(__name__)


@dataclass
class DuplicateGroup:
    activity_name: str
    provider_name: str
    rows: List[Any]  # newest first

    @property
    def keep(self) -> Any:
        return self.rows[0]

    @property
    def redundant(self) -> List[Any]:
        return self.rows[1:]


@dataclass
class DedupResult:
    source: str
    groups: int = 0
    kept: int = 0
    removed: int = 0
    failed: int = 0
    removed_ids: List[int] = field(default_factory=list)
    failed_ids: List[int] = field(default_factory=list)


def _recency_key(row: Any) -> Tuple:
    imported_at = getattr(row, "imported_at", None)
    # rows without a timestamp sort as the oldest
    return (imported_at is not None, imported_at if imported_at is not None else 0, row.id)


def find_duplicate_groups(rows: Sequence[Any]) -> List[DuplicateGroup]:
    """Groups sharing a (name, provider) key, largest first, each newest first."""
    buckets: Dict[Tuple[str, str], List[Any]] = {}
    for row in rows:
        key = (row.activity_name, row.provider_name)
        buckets.setdefault(key, []).append(row)

    groups = [
        DuplicateGroup(name, provider, sorted(members, key=_recency_key, reverse=True))
        for (name, provider), members in buckets.items()
        if len(members) > 1
    ]
    groups.sort(key=lambda g: (-len(g.rows), g.activity_name, g.provider_name))
    return groups


def deduplicate(repo: RawActivityRepository) -> DedupResult:
    """Delete all but the newest row of every duplicate group in one raw table."""
    result = DedupResult(source=repo.source)
    rows = repo.list_all(newest_first=True)
    groups = find_duplicate_groups(rows)
    result.groups = len(groups)

    logger.info(f"[{repo.source}] {len(rows)} raw rows, {len(groups)} duplicate groups")

    for group in groups:
        logger.debug(
            f"[{repo.source}] keeping {group.keep.id} for "
            f"\"{group.activity_name}\" by {group.provider_name} ({len(group.rows)} copies)"
        )
        for row in group.redundant:
            row_id = row.id
            try:
                repo.delete(row_id)
                result.removed += 1
                result.removed_ids.append(row_id)
            except Exception as e:
                logger.error(f"[{repo.source}] failed to delete duplicate {row_id}: {e}")
                result.failed += 1
                result.failed_ids.append(row_id)
        result.kept += 1

    logger.info(
        f"[{repo.source}] dedup done: kept {result.kept}, removed {result.removed}, "
        f"failed {result.failed}"
    )
    return result
