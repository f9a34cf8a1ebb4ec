"""Allow running as `python -m taskprogress`."""

import sys

from taskprogress.frontends.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
