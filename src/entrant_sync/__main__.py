import sys

from entrant_sync.cli import main

sys.exit(main())
