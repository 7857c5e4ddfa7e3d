"""Allow ``python -m quickshare``."""

import sys

from quickshare.cli import main

sys.exit(main())
