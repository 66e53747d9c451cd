#!/usr/bin/env python
"""
e2e-harness CLI entry point.

Usage:
    python cli.py run scenarios/dev-toolkit-migrations.yaml --env staging
    python cli.py run scenarios/dev-toolkit-migrations.yaml --localhost --headed
    python cli.py auth check
    python cli.py cleanup --days 10
"""

from e2e_harness.cli.app import main

if __name__ == "__main__":
    main()
