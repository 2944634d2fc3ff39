"""
Append a scraper export (JSON array) to a raw import table.
Run: python scripts/import_activities.py <export.json> <gyg|viator>
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from market_intel.core.config import get_settings
from market_intel.core.monitoring import configure_logging
from market_intel.db.models import RAW_MODELS
from market_intel.jobs import import_file, run_job


def main(argv) -> int:
    if len(argv) != 2 or argv[1] not in RAW_MODELS:
        print(f"usage: import_activities.py <export.json> <{'|'.join(RAW_MODELS)}>", file=sys.stderr)
        return 2
    path, source = argv
    settings = get_settings()
    configure_logging(settings)
    return run_job(f"Import {source} activities", import_file(path, source), settings)


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
