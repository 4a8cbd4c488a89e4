"""Allow ``python -m artwork_toolkit``."""

import sys

from .cli.main import main

sys.exit(main())
