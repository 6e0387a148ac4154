# ABOUTME: Entry point for the admin CLI.
# ABOUTME: Run with: python -m loreweave status

import sys

from loreweave.interface.admin_cli import main

if __name__ == "__main__":
    sys.exit(main())
