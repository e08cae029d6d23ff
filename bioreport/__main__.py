"""
Main entry point for the bioreport package

This allows running the package with: python -m bioreport
"""

import sys

from .cli.main import main

if __name__ == "__main__":
    sys.exit(main())
