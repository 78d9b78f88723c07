"""Package entry point for ``python -m callcov``."""

import sys
from callcov.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
