import sys

from screenfeed.cli import main

sys.exit(main())
