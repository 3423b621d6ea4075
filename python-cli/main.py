#!/usr/bin/env python3
"""
CryptoPiano Command Line Launcher

Runs the CLI from a source checkout without installing the package.

Usage:
    python python-cli/main.py --help
"""

import sys
import os

# Add python-core to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'python-core'))

from cryptopiano.cli import main


if __name__ == "__main__":
    main()
