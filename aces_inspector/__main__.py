import sys

from aces_inspector.cli import main

sys.exit(main())
