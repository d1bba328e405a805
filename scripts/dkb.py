#!/usr/bin/env python3
"""
DKB Banking Automation

Exports transactions (and optionally balances) of selected accounts for a
date range, either as JSON read from the result table or as the portal's own
export file. See `dkb.py --help`.
"""

import sys
sys.stdout.reconfigure(line_buffering=True)
sys.stderr.reconfigure(line_buffering=True)

from dkb_scraper.cli import main

if __name__ == "__main__":
    sys.exit(main() or 0)
