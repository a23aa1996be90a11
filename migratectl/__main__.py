"""Allow ``python -m migratectl``."""

import sys

from .cli import main

sys.exit(main())
