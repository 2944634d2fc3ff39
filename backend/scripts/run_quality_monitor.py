"""
Log coverage, quality score distribution and follow-up recommendations
for cleaned_activities.
Run: python scripts/run_quality_monitor.py
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from market_intel.core.config import get_settings
from market_intel.core.monitoring import configure_logging
from market_intel.jobs import monitor_quality, run_job


def main() -> int:
    settings = get_settings()
    configure_logging(settings)
    return run_job("Quality monitor", monitor_quality, settings)


if __name__ == "__main__":
    sys.exit(main())
