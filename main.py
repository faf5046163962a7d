#!/usr/bin/env python3
"""TimesheetTimer — entry point.

Run with:
    python main.py status
    python -m timesheettimer status
"""

import sys

from timesheettimer.__main__ import main


if __name__ == "__main__":
    sys.exit(main())
