"""distcommit CLI: commit the staged output of a distributed copy."""

from ._helpers import main  # noqa: F401  (entry point)

# Import command modules to register Click commands with the main group.
from . import _commit  # noqa: F401
