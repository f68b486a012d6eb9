"""procwatch entry point.

Supports: python -m procwatch
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
