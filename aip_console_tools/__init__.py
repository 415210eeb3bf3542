"""
AIP Console Tools - command line and build steps for CAST AIP Console

Starts analysis jobs on a remote AIP Console (deliver, analyze, snapshot,
fast scan, onboarding, imports, function points) and follows them until they
end, turning the outcome into a process exit code or a build result.
"""

__version__ = "0.1.0"
__description__ = "Command line and build-step client for CAST AIP Console"

from aip_console_tools.config import settings
from aip_console_tools.exceptions import ExitCode

__all__ = ["ExitCode", "settings", "__version__"]
