# batchreel/cli/commands: Command modules for the batchreel CLI.
#
# Each module in this package provides one or more CLI commands.

from .run import regenerate, retry, run
from .status import status, validate

__all__ = [
    # run.py
    "run",
    "retry",
    "regenerate",
    # status.py
    "status",
    "validate",
]
