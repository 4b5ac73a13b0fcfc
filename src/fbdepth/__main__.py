"""Allow `python -m fbdepth` to launch the CLI."""

import sys

from .main import main


if __name__ == '__main__':
    sys.exit(main())
