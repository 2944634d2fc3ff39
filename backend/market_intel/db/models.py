"""
Database models -- SQLAlchemy ORM definitions.
Raw import tables (one per source platform) and the canonical
cleaned_activities table read by reports and the market API.
Compatible with both PostgreSQL and SQLite.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, JSON, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RawActivityMixin:
    """
    Columns shared by both raw import tables.
    activity_name / provider_name are always present (may be "");
    everything else is free text straight from the scraper.
    """

    id = Column(Integer, primary_key=True, index=True)
    original_id = Column(Text, index=True)
    activity_name = Column(Text, nullable=False, default="", index=True)
    provider_name = Column(Text, nullable=False, default="", index=True)
    location = Column(Text)
    city = Column(Text)
    country = Column(Text)
    region = Column(Text)
    price_text = Column(Text)
    rating_text = Column(Text)
    review_count_text = Column(Text)
    duration = Column(Text)
    description = Column(Text)
    category = Column(Text)
    activity_type = Column(Text)
    url = Column(Text)
    tags = Column(JSON, default=list)
    imported_at = Column(DateTime(timezone=True), default=utcnow, index=True)


class ImportedGYGActivity(RawActivityMixin, Base):
    """GetYourGuide listings as imported from the scraper database."""
    __tablename__ = "imported_gyg_activities"


class ImportedMadridActivity(RawActivityMixin, Base):
    """
    Viator listings. The table name is historical: it started as the
    Madrid import and now holds every Viator-sourced row.
    """
    __tablename__ = "imported_madrid_activities"


# source tag -> raw table model
RAW_MODELS = {
    "gyg": ImportedGYGActivity,
    "viator": ImportedMadridActivity,
}


class CleanedActivity(Base):
    """
    Canonical, typed record derived from exactly one surviving raw row.
    Keyed for upserts on (original_id, original_source).
    """
    __tablename__ = "cleaned_activities"
    __table_args__ = (
        UniqueConstraint("original_id", "original_source", name="uq_cleaned_original"),
    )

    id = Column(Integer, primary_key=True, index=True)
    original_id = Column(Text, nullable=False, index=True)
    original_source = Column(Text, nullable=False, index=True)
    platform = Column(Text, nullable=False, index=True)

    activity_name = Column(Text, nullable=False, default="")
    provider_name = Column(Text, nullable=False, default="", index=True)
    location = Column(Text)
    city = Column(Text, nullable=False, default="Unknown", index=True)
    country = Column(Text)
    region = Column(Text, index=True)
    # True when region was derived from the resolved city rather than scraped
    region_inferred = Column(Boolean, nullable=False, default=False)
    venue = Column(Text)

    price_text = Column(Text)
    price_numeric = Column(Float)
    price_currency = Column(Text, index=True)
    rating_text = Column(Text)
    rating_numeric = Column(Float)
    review_count_text = Column(Text)
    review_count_numeric = Column(Integer)
    duration = Column(Text)
    duration_hours = Column(Float)
    duration_days = Column(Float)

    description = Column(Text)
    category = Column(Text)
    activity_type = Column(Text)
    url = Column(Text)
    tags = Column(JSON, default=list)

    quality_score = Column(Integer, nullable=False, default=0)
    cleaned_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
