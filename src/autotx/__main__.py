import sys

from autotx.cli import main

sys.exit(main())
