import sys

from mxrevo.cli import main

sys.exit(main())
