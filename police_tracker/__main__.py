#!/usr/bin/env python3
"""
Run the scraping service CLI.

Usage:
    python -m police_tracker <command> [options]

Commands:
    start     - Run the scheduler in the foreground
    stop      - Stop a running service
    status    - Show service status
    test      - Run one scraping pass
    trigger   - Start scraping now
    extract   - Preview extraction for URLs
    init-db   - Create database tables
"""

import sys

from .cli import main

if __name__ == '__main__':
    sys.exit(main())
