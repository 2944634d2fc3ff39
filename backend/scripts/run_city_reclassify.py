"""
Re-resolve the city of every cleaned activity and fix misclassified rows.
Safe to run repeatedly.
Run: python scripts/run_city_reclassify.py
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from market_intel.core.config import get_settings
from market_intel.core.monitoring import configure_logging
from market_intel.jobs import reclassify, run_job


def main() -> int:
    settings = get_settings()
    configure_logging(settings)
    return run_job("City reclassification", reclassify, settings)


if __name__ == "__main__":
    sys.exit(main())
