"""Allow ``python -m zapvault``."""

import sys

from zapvault.cli.main import main

if __name__ == "__main__":
    sys.exit(main() or 0)
