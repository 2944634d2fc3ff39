"""
Repository pattern for data access.
Raw import tables are read and pruned here; cleaned_activities is written
only through CleanedActivityRepository.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import and_, or_, func
import logging

from market_intel.db.models import CleanedActivity, RAW_MODELS

logger = logging.getLogger(__name__)


class RawActivityRepository:
    """
    Access to one raw import table, selected by source tag ("gyg" | "viator").
    """

    def __init__(self, db: Session, source: str):
        if source not in RAW_MODELS:
            raise ValueError(f"Unknown source {source!r}; expected one of {sorted(RAW_MODELS)}")
        self.db = db
        self.source = source
        self.model = RAW_MODELS[source]

    def list_all(self, newest_first: bool = False) -> List[Any]:
        """All rows, ascending id (cleaning order) or newest import first (dedup order)."""
        query = self.db.query(self.model)
        if newest_first:
            query = query.order_by(self.model.imported_at.desc(), self.model.id.desc())
        else:
            query = query.order_by(self.model.id.asc())
        return query.all()

    def count(self) -> int:
        return self.db.query(self.model).count()

    def add_many(self, rows: Iterable[Dict[str, Any]]) -> int:
        """Append raw rows; returns how many were added."""
        objects = [self.model(**row) for row in rows]
        self.db.add_all(objects)
        self.db.commit()
        return len(objects)

    def delete(self, row_id: int) -> bool:
        """Delete one row by id. Rolls back and re-raises on failure."""
        try:
            deleted = self.db.query(self.model).filter(self.model.id == row_id).delete(
                synchronize_session=False
            )
            self.db.commit()
            return bool(deleted)
        except Exception:
            self.db.rollback()
            raise


class CleanedActivityRepository:
    """
    Repository for the cleaned_activities table.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_original(self, original_id: str, source: str) -> Optional[CleanedActivity]:
        return self.db.query(CleanedActivity).filter(
            CleanedActivity.original_id == original_id,
            CleanedActivity.original_source == source,
        ).first()

    def upsert(self, values: Dict[str, Any]) -> Tuple[CleanedActivity, bool]:
        """
        Insert or overwrite the row keyed on (original_id, original_source).
        Returns (row, created). Commits; rolls back and re-raises on failure.
        """
        try:
            row = self.get_by_original(values["original_id"], values["original_source"])
            created = row is None
            if created:
                row = CleanedActivity(**values)
                self.db.add(row)
            else:
                for key, value in values.items():
                    setattr(row, key, value)
            self.db.commit()
            return row, created
        except Exception:
            self.db.rollback()
            raise

    def update_fields(self, row: CleanedActivity, **fields: Any) -> None:
        try:
            for key, value in fields.items():
                setattr(row, key, value)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def delete_all(self) -> int:
        deleted = self.db.query(CleanedActivity).delete(synchronize_session="fetch")
        self.db.commit()
        return deleted

    def delete_for_originals(self, source: str, original_ids: Iterable[Any]) -> int:
        """Drop cleaned rows whose raw rows no longer exist."""
        ids = [str(i) for i in original_ids]
        if not ids:
            return 0
        deleted = self.db.query(CleanedActivity).filter(
            CleanedActivity.original_source == source,
            CleanedActivity.original_id.in_(ids),
        ).delete(synchronize_session="fetch")
        self.db.commit()
        return deleted

    def list_all(self) -> List[CleanedActivity]:
        return self.db.query(CleanedActivity).order_by(CleanedActivity.id.asc()).all()

    def count(self) -> int:
        return self.db.query(CleanedActivity).count()

    def filter_activities(
        self,
        city: Optional[str] = None,
        platform: Optional[str] = None,
        region: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
    ) -> List[CleanedActivity]:
        """
        Market endpoint query. A provider search takes precedence over the
        city filter; platform and region are exact matches.
        """
        query = self.db.query(CleanedActivity)

        if search:
            query = query.filter(CleanedActivity.provider_name.ilike(f"%{search}%"))
        elif city:
            query = query.filter(
                or_(
                    CleanedActivity.city.ilike(f"%{city}%"),
                    CleanedActivity.location.ilike(f"%{city}%"),
                )
            )

        if platform:
            query = query.filter(CleanedActivity.platform == platform)

        if region:
            query = query.filter(CleanedActivity.region == region)

        results = query.order_by(
            CleanedActivity.cleaned_at.desc(), CleanedActivity.id.desc()
        ).limit(limit).all()
        logger.debug(f"Market query returned {len(results)} activities")
        return results

    def count_by(self, column_name: str, limit: Optional[int] = None) -> List[Tuple[Optional[str], int]]:
        """groupBy counts for one column, largest first."""
        column = getattr(CleanedActivity, column_name)
        query = (
            self.db.query(column, func.count(CleanedActivity.id))
            .group_by(column)
            .order_by(func.count(CleanedActivity.id).desc(), column)
        )
        if limit:
            query = query.limit(limit)
        return [(value, count) for value, count in query.all()]

    def count_where_not_null(self, column_name: str) -> int:
        column = getattr(CleanedActivity, column_name)
        return self.db.query(CleanedActivity).filter(column.isnot(None)).count()

    def count_known_city(self) -> int:
        return self.db.query(CleanedActivity).filter(
            CleanedActivity.city != "Unknown", CleanedActivity.city != ""
        ).count()

    def count_with_description(self) -> int:
        return self.db.query(CleanedActivity).filter(
            CleanedActivity.description.isnot(None),
            func.trim(CleanedActivity.description) != "",
        ).count()

    def count_with_duration(self) -> int:
        """Same rule as the quality scorer: parsed hours/days or any duration text."""
        return self.db.query(CleanedActivity).filter(
            or_(
                CleanedActivity.duration_hours.isnot(None),
                CleanedActivity.duration_days.isnot(None),
                and_(
                    CleanedActivity.duration.isnot(None),
                    func.trim(CleanedActivity.duration) != "",
                ),
            )
        ).count()

    def quality_scores(self) -> List[int]:
        return [score for (score,) in self.db.query(CleanedActivity.quality_score).all()]
