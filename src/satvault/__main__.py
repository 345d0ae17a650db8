"""Allow `python -m satvault`."""

import sys

from satvault.cli import main

sys.exit(main())
