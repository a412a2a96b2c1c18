#!/usr/bin/env python3
"""Start the Autobahn fuzzing server for this repository's WebSocket tests.

Host directories resolve next to this script (``config/`` and ``reports/``),
so it behaves the same from any working directory:

    python autobahn/run.py
"""

from fuzzrun.cli import main

if __name__ == "__main__":
    main(anchor=__file__)
