#!/usr/bin/env python
"""
Launcher script for the Bakery Costing command-line interface.

This script ensures the src/ directory is importable before launching the CLI
from a source checkout.
"""

import sys
from pathlib import Path

# Add src/ to the Python path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from bakery_costing.cli import main

if __name__ == "__main__":
    sys.exit(main())
