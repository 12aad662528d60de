import sys

from tada.cli import main

sys.exit(main())
