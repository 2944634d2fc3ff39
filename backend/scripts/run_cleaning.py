"""
Clean every surviving raw activity into cleaned_activities (upsert).
Run: python scripts/run_cleaning.py
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from market_intel.core.config import get_settings
from market_intel.core.monitoring import configure_logging
from market_intel.jobs import clean_activities, run_job


def main() -> int:
    settings = get_settings()
    configure_logging(settings)
    return run_job("Cleaning pipeline", clean_activities, settings)


if __name__ == "__main__":
    sys.exit(main())
