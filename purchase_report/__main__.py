import sys

from purchase_report.cli import main

sys.exit(main())
