"""Entry point for ``python -m hris_payroll``."""

import sys

from hris_payroll.cli import main

if __name__ == "__main__":
    sys.exit(main())
