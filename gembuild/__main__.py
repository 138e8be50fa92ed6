"""Allow ``python -m gembuild <gem_name> <gem_version>``."""
import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
