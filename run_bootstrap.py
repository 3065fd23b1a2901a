#!/usr/bin/env python3
"""
Entry point for the bootstrap orchestration engine.

Equivalent to the 'bootstrap-engine' console script:

    ./run_bootstrap.py run all /path/to/project --dry-run
"""

from engine.cli import cli

if __name__ == "__main__":
    cli()
