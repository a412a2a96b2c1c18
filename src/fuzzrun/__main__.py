"""
Main entry point for fuzzrun.

This module allows fuzzrun to be run as:
    python -m fuzzrun
"""

from .cli import main

if __name__ == "__main__":
    main()
