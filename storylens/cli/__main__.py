"""Allow ``python -m storylens.cli`` execution."""

import sys

from storylens.cli.manuscript import main

sys.exit(main())
