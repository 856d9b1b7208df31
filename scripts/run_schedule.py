#!/usr/bin/env python3
"""
Run Schedule - Generate a schedule from the files in config/

Usage:
  python scripts/run_schedule.py --start 2025-07-01 --end 2025-07-31

Outputs to outputs/ directory.
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from medishift.cli import main

if __name__ == "__main__":
    sys.exit(main())
