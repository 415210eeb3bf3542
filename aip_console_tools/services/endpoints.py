"""AIP Console REST endpoint paths."""

API_INFO = "/api/"
USER = "/api/user"
APPLICATIONS = "/api/applications"
APPLICATIONS_COMMON_DETAILS = "/api/applications/common-details"
DOMAINS = "/api/domains"
JOBS = "/api/jobs"
SERVER_FOLDERS = "/api/server-folders"
ONBOARDING_SETTINGS = "/api/settings/onboard-application"
IMAGING_SETTINGS = "/api/settings/imaging"
CSS_SETTINGS = "/api/settings/css-settings"
ARCHITECTURE_MODELS = "/api/architecture-studio/models"

JEE_TECHNOLOGY_PATH = "/jee"
DOTNET_TECHNOLOGY_PATH = "/dotnet"


def application(app_guid: str) -> str:
    return f"{APPLICATIONS}/{app_guid}"


def application_versions(app_guid: str) -> str:
    return f"{application(app_guid)}/versions"


def application_onboarding(app_guid: str) -> str:
    return f"{application(app_guid)}/onboarding"


def application_upload(app_guid: str) -> str:
    return f"{application(app_guid)}/upload"


def onboarding_upload() -> str:
    return f"{APPLICATIONS}/upload"


def delivery_configuration(app_guid: str) -> str:
    return f"{application(app_guid)}/delivery-configuration"


def discover_packages(app_guid: str) -> str:
    return f"{delivery_configuration(app_guid)}/discover-packages"


def application_pending_result(app_guid: str, result_guid: str) -> str:
    return f"{application(app_guid)}/pending-results/{result_guid}"


def pending_result(result_guid: str) -> str:
    return f"/api/pending-results/{result_guid}"


def delivery_report(app_guid: str, version_guid: str) -> str:
    return f"{application_versions(app_guid)}/{version_guid}/dmt-report/download"


def security_dataflow(app_guid: str, technology_path: str) -> str:
    return f"{application(app_guid)}/settings/security-dataflow{technology_path}"


def debug_options(app_guid: str) -> str:
    return f"{application(app_guid)}/debug-options"


def debug_option_show_sql(app_guid: str) -> str:
    return f"{debug_options(app_guid)}/show-sql"


def debug_option_amt_profile(app_guid: str) -> str:
    return f"{debug_options(app_guid)}/activate-amt-memory-profile"


def module_generation_type(app_guid: str) -> str:
    return f"{application(app_guid)}/module-options/generation-type"


def function_point_rules(app_guid: str) -> str:
    return f"{application(app_guid)}/function-points/rules"


def function_point_setting(app_guid: str, key: str) -> str:
    return f"{application(app_guid)}/function-points/settings/{key}"


def function_point_rule_content(app_guid: str) -> str:
    return f"{application(app_guid)}/function-points/rule-content"


def job(job_guid: str) -> str:
    return f"{JOBS}/{job_guid}"


def job_cancel(job_guid: str) -> str:
    return f"{job(job_guid)}/cancel"


def job_step_logs(job_guid: str, step: str) -> str:
    return f"{job(job_guid)}/steps/{step}/logs"


def css_server_applications(css_guid: str) -> str:
    return f"{CSS_SETTINGS}/{css_guid}/applications"


def css_server_import(css_guid: str) -> str:
    return f"{CSS_SETTINGS}/{css_guid}/import"
