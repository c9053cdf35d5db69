# =============================================================================
# tamdata/cli/__init__.py: CLI Module Overview
# =============================================================================
#
# Command-line tools for operators and developers working with the
# market-data core outside of a tool-calling client.
#
# Architecture Notes:
#   - argparse only (no Click/Typer).
#   - The CLI builds its service through tamdata.main.async_session, the
#     same composition root every other entry point uses.
#   - Logs go to stderr; command output goes to stdout.
# =============================================================================

"""CLI tools for tam-data-hub.

- ``python -m tamdata.cli market-size ID [--region R] [--json]``
- ``python -m tamdata.cli providers``
- ``python -m tamdata.cli cache-stats``
- ``python -m tamdata.cli cache-health``
- ``python -m tamdata.cli invalidate PATTERN``
"""
