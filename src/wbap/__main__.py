"""
Entry point for running wbap as a module.

Usage:
    python -m wbap [command] [options]
"""

from wbap.cli import main

if __name__ == "__main__":
    main()
