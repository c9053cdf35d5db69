# =============================================================================
# tamdata/cli/__main__.py: Package Entry Point
# =============================================================================
#
# Enables `python -m tamdata.cli <command>`; delegates to market.main().
# =============================================================================

"""Allow ``python -m tamdata.cli`` execution."""

import sys

from tamdata.cli.market import main

sys.exit(main())
