"""Console commands, one coroutine per job type."""

from .analyze import analyze, snapshot
from .architecture import architecture_studio
from .base import ConsoleSession, exit_code_for, job_outcome, run_command
from .deliver import create_application, deliver
from .function_points import (
    check_rule_content,
    compute_function_points,
    list_function_point_rules,
    update_settings,
)
from .imports import import_applications, list_importable_applications
from .onboarding import deep_analyze, fast_scan, onboard, publish_to_imaging

__all__ = [
    "ConsoleSession",
    "analyze",
    "architecture_studio",
    "check_rule_content",
    "compute_function_points",
    "create_application",
    "deep_analyze",
    "deliver",
    "exit_code_for",
    "fast_scan",
    "import_applications",
    "job_outcome",
    "list_function_point_rules",
    "list_importable_applications",
    "onboard",
    "publish_to_imaging",
    "run_command",
    "snapshot",
    "update_settings",
]
