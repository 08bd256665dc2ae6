#!/usr/bin/env python3
"""
ExecDesk - Main Entrypoint

USAGE:
    python main.py metrics --data data/
    python main.py anomalies --data data/ --config config/
    python main.py simulate --data data/ --strategy S1 --order-timeout-ms 5000
"""

import sys

from execdesk.cli import main


if __name__ == '__main__':
    sys.exit(main())
