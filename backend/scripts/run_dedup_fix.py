"""
Remove duplicate raw activities (same name + provider, newest import wins)
from both raw tables, then re-clean.
Run: python scripts/run_dedup_fix.py
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from market_intel.core.config import get_settings
from market_intel.core.monitoring import configure_logging
from market_intel.jobs import fix_duplicates, run_job


def main() -> int:
    settings = get_settings()
    configure_logging(settings)
    return run_job("Duplicate fix", fix_duplicates, settings)


if __name__ == "__main__":
    sys.exit(main())
