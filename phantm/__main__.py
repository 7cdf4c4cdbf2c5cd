import sys

from phantm.cli import main

sys.exit(main())
