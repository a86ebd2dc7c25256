"""
Module execution entry point.

Allows running with: python -m census_cli
"""

import sys
from census_cli.main import main

if __name__ == "__main__":
    sys.exit(main())
