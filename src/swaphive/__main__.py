"""Allow running as ``python -m swaphive``."""

import sys

from swaphive.main import main

sys.exit(main())
