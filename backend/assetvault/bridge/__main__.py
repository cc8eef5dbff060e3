"""Allow ``python -m assetvault.bridge``."""

import sys

from assetvault.bridge.cli import main

sys.exit(main())
