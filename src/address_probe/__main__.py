"""
Usage:
    python -m address_probe [db_path] [candidates_path]
"""

import sys

from .runner import main

if __name__ == "__main__":
    sys.exit(main())
