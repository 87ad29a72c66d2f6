import sys

from dcrps.cli import main

sys.exit(main())
