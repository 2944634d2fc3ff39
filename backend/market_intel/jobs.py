"""
Batch jobs behind the scripts in backend/scripts/.

Each job takes an open session and the CleaningConfig. run_job wires up
the engine from Settings, runs one job and turns the outcome into a
process exit code: 0 on completion, 1 on any unhandled exception.
"""

from typing import Callable, Dict, Optional
import logging

from sqlalchemy.orm import Session

from market_intel.core.config import CleaningConfig, Settings, get_settings
from market_intel.db.database import create_db_engine, init_db, make_session_factory
from market_intel.db.repositories import CleanedActivityRepository, RawActivityRepository
from market_intel.services.cleaning import SOURCES, CleaningPipeline, CleaningStats, ReclassifyStats, reclassify_cities
from market_intel.services.deduplicator import DedupResult, deduplicate
from market_intel.services.importer import ImportStats, import_raw_activities, load_export
from market_intel.services.reporting import QualityMetrics, distributions, log_quality_report, quality_metrics

logger = logging.getLogger(__name__)

Job = Callable[[Session, CleaningConfig], object]


def clean_activities(db: Session, config: CleaningConfig) -> CleaningStats:
    """Incremental run: upsert every surviving raw row."""
    return CleaningPipeline(db, config).run()


def rebuild_activities(db: Session, config: CleaningConfig) -> CleaningStats:
    """Delete all cleaned rows, then clean everything again."""
    return CleaningPipeline(db, config).run(full_rebuild=True)


def fix_duplicates(db: Session, config: CleaningConfig) -> Dict[str, DedupResult]:
    """
    Deduplicate both raw tables, drop the cleaned rows of the removed raw
    rows, then re-clean so survivors carry fresh values.
    """
    cleaned = CleanedActivityRepository(db)
    results: Dict[str, DedupResult] = {}
    for source in SOURCES:
        result = deduplicate(RawActivityRepository(db, source))
        pruned = cleaned.delete_for_originals(source, result.removed_ids)
        if pruned:
            logger.info(f"[{source}] removed {pruned} cleaned rows of deleted duplicates")
        results[source] = result

    CleaningPipeline(db, config).run()
    return results


def reclassify(db: Session, config: CleaningConfig) -> ReclassifyStats:
    return reclassify_cities(db, config)


def monitor_quality(db: Session, config: CleaningConfig) -> QualityMetrics:
    metrics = quality_metrics(db, config)
    log_quality_report(metrics)
    for name, counts in distributions(db).items():
        logger.info(f"{name.title()} distribution: " + ", ".join(f"{c['value']}: {c['count']}" for c in counts))
    return metrics


def import_file(path: str, source: str) -> Job:
    """Job that appends a JSON export to the raw table for source."""
    def job(db: Session, config: CleaningConfig) -> ImportStats:
        records = load_export(path)
        logger.info(f"Loaded {len(records)} records from {path}")
        return import_raw_activities(db, records, source)
    return job


def run_job(name: str, job: Job, settings: Optional[Settings] = None) -> int:
    """Run one job against the configured database; returns the exit code."""
    settings = settings or get_settings()
    config = CleaningConfig.from_settings(settings)
    logger.info(f"Starting {name}")

    engine = None
    db = None
    try:
        engine = create_db_engine(settings)
        init_db(engine)
        db = make_session_factory(engine)()
        job(db, config)
        logger.info(f"{name} completed")
        return 0
    except Exception as e:
        logger.exception(f"{name} failed: {e}")
        return 1
    finally:
        if db is not None:
            db.close()
        if engine is not None:
            engine.dispose()
