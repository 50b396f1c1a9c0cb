import sys

from pseudomr.cli import main

sys.exit(main())
