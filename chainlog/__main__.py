import sys

from chainlog.cli import main

sys.exit(main())
