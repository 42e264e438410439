"""Allow `python -m plexcaster`."""

import sys

from plexcaster.main import main

sys.exit(main())
