"""Application, version and delivery configuration service."""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from pydantic import ValidationError

from . import endpoints
from ..config import Settings
from ..exceptions import (
    ApiCallException,
    ApplicationServiceException,
    JobAbortedException,
    JobServiceException,
    PackagePathInvalidException,
)
from ..models.application_models import (
    Application,
    ApplicationCommonDetails,
    ApplicationOnboarding,
    Applications,
    CssServer,
    Domain,
    FunctionPointRule,
    ImportableApplication,
    ImportedApplication,
    RuleContent,
    Version,
    VersionStatus,
)
from ..models.delivery_models import (
    DeliveryConfiguration,
    DeliveryPackage,
    DiscoverPackageRequest,
    Exclusions,
    invalid_packages,
)
from ..models.job_models import JobRequest, JobState, ModuleGenerationType
from ..utils.selection import find_by_name, select_version
from .console_client import ConsoleClient
from .jobs_service import JobsService
from .polling import PendingResultPoller

logger = logging.getLogger(__name__)

VERSION_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


class ApplicationService:
    """Looks up and updates applications on AIP Console."""

    def __init__(
        self,
        client: ConsoleClient,
        jobs_service: JobsService,
        settings: Settings,
        pending_poller: Optional[PendingResultPoller] = None,
        import_poller: Optional[PendingResultPoller] = None,
    ):
        """Initialize the application service.

        Args:
            client: Console REST client
            jobs_service: Service used for create-application jobs
            settings: Application settings
            pending_poller: Resolver for 202 / pending-result responses
            import_poller: Resolver used by the application import flow
        """
        self.client = client
        self.jobs_service = jobs_service
        self.settings = settings
        self.pending_poller = pending_poller or PendingResultPoller(
            interval=settings.pending_result_interval_seconds,
            max_attempts=settings.pending_result_max_attempts,
        )
        self.import_poller = import_poller or PendingResultPoller(
            interval=settings.import_pending_interval_seconds,
            max_attempts=settings.pending_result_max_attempts,
        )

    # Lookups

    async def get_applications(self) -> List[Application]:
        try:
            data = await self.client.get(endpoints.APPLICATIONS)
            return Applications.model_validate(data).applications if data else []
        except (ApiCallException, ValidationError) as e:
            raise ApplicationServiceException(f"Unable to get applications from AIP Console: {e}")

    async def get_application_from_name(self, name: str) -> Optional[Application]:
        return find_by_name(await self.get_applications(), name)

    async def get_application_from_guid(self, app_guid: str) -> Optional[Application]:
        wanted = app_guid.lower()
        for application in await self.get_applications():
            if application.guid.lower() == wanted:
                return application
        return None

    async def get_application_guid_from_name(self, name: str) -> Optional[str]:
        application = await self.get_application_from_name(name)
        return application.guid if application else None

    async def get_application_details(self, app_guid: str) -> Application:
        try:
            data = await self.client.get(endpoints.application(app_guid))
            return Application.model_validate(data)
        except (ApiCallException, ValidationError) as e:
            raise ApplicationServiceException(
                f"Unable to get an application with GUID {app_guid}: {e}"
            )

    async def get_application_details_from_name(
        self, name: str
    ) -> Optional[ApplicationCommonDetails]:
        try:
            data = await self.client.get(endpoints.APPLICATIONS_COMMON_DETAILS) or []
            details = [ApplicationCommonDetails.model_validate(item) for item in data]
        except (ApiCallException, ValidationError) as e:
            raise ApplicationServiceException(f"Unable to get applications list: {e}")
        return find_by_name(details, name)

    async def get_domain_from_name(self, domain_name: str) -> Optional[Domain]:
        try:
            data = await self.client.get(endpoints.DOMAINS) or []
            domains = [Domain.model_validate(item) for item in data]
        except (ApiCallException, ValidationError) as e:
            raise ApplicationServiceException(f"Unable to get domains: {e}")
        return find_by_name(domains, domain_name)

    async def get_or_create_application_from_name(
        self,
        name: str,
        auto_create: bool = False,
        node_name: Optional[str] = None,
        domain_name: Optional[str] = None,
        css_server_name: Optional[str] = None,
        verbose: Optional[bool] = None,
        token=None,
    ) -> Optional[str]:
        """Return the GUID of an application, creating it when allowed.

        Returns:
            The application GUID, or None when it does not exist and
            ``auto_create`` is disabled (or the creation job did not complete)

        Raises:
            ApplicationServiceException: If no name is given or creation fails
        """
        if not name or not name.strip():
            raise ApplicationServiceException("No application name provided.")

        application = await self.get_application_from_name(name)
        if application is not None:
            return application.guid
        if not auto_create:
            return None

        message = f"Application '{name}' not found and 'auto create' enabled. Starting application creation"
        if node_name:
            message += f" on node {node_name}"
        logger.info(message)

        try:
            css_guid = await self.jobs_service.get_css_guid(css_server_name)
            if css_guid:
                logger.info(f"Application {name} data repository will be stored in CSS server {css_guid}")
            else:
                logger.info(f"Application {name} data repository will be stored on the default CSS server")

            job_guid = await self.jobs_service.start_create_application(
                name, node_name=node_name, domain_name=domain_name, css_guid=css_guid
            )
            return await self.jobs_service.poll_and_wait_for_job_finished(
                job_guid,
                result_fn=lambda s: s.created_app_guid if s.state == JobState.COMPLETED else None,
                verbose=verbose,
                token=token,
            )
        except JobAbortedException:
            raise
        except (JobServiceException, ApiCallException) as e:
            logger.error(f"Could not create the application: {e}")
            raise ApplicationServiceException(f"Unable to create application automatically: {e}")

    async def get_application_onboarding(self, app_guid: str) -> ApplicationOnboarding:
        try:
            data = await self.client.get(endpoints.application_onboarding(app_guid))
            return ApplicationOnboarding.model_validate(data or {})
        except (ApiCallException, ValidationError) as e:
            raise ApplicationServiceException(
                f"Unable to get onboarded application with GUID {app_guid}: {e}"
            )

    # Versions

    async def get_application_versions(self, app_guid: str) -> List[Version]:
        try:
            data = await self.client.get(endpoints.application_versions(app_guid)) or []
            return [Version.model_validate(item) for item in data]
        except (ApiCallException, ValidationError) as e:
            raise ApplicationServiceException(f"Unable to retrieve the application versions: {e}")

    async def application_has_version(self, app_guid: str) -> bool:
        return bool(await self.get_application_versions(app_guid))

    @staticmethod
    def get_version_date(value: Optional[str]) -> datetime:
        """Parse a ``YYYY-MM-DDTHH:MM:SS`` date; empty means now."""
        if not value:
            return datetime.now(timezone.utc)
        try:
            return datetime.strptime(value, VERSION_DATE_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError as e:
            logger.error("Version release date doesn't match the expected date format")
            raise ApplicationServiceException(
                f"Version release date doesn't match the expected date format: {e}"
            )

    # Settings

    async def is_onboarding_settings_enabled(self) -> bool:
        try:
            data = await self.client.get(endpoints.ONBOARDING_SETTINGS)
        except ApiCallException as e:
            raise ApplicationServiceException(f"Unable to retrieve the onboarding mode settings: {e}")
        return bool(data.get("data")) if isinstance(data, dict) else bool(data)

    async def set_enable_onboarding(self, enabled: bool) -> None:
        try:
            await self.client.put(endpoints.ONBOARDING_SETTINGS, {"data": enabled})
        except ApiCallException as e:
            raise ApplicationServiceException(f"Unable to update the 'On-boarding mode' settings: {e}")

    async def is_imaging_available(self) -> bool:
        try:
            data = await self.client.get(endpoints.IMAGING_SETTINGS)
        except ApiCallException as e:
            raise ApplicationServiceException(f"Unable to retrieve the imaging settings: {e}")
        return bool(data.get("valid")) if isinstance(data, dict) else False

    # Delivery configuration

    async def discover_packages(
        self,
        app_guid: str,
        source_path: str,
        previous_version_guid: Optional[str] = None,
        fail_on_invalid_path: bool = False,
    ) -> Set[DeliveryPackage]:
        """Ask the console which packages a source folder contains.

        Raises:
            PackagePathInvalidException: If some packages have no path
            JobServiceException: If discovery itself fails
        """
        request = DiscoverPackageRequest(
            source_path=source_path, previous_version_guid=previous_version_guid
        )
        try:
            response = await self.client.exchange(
                "POST", endpoints.discover_packages(app_guid), json_data=request.to_payload()
            )
            data = await self.pending_poller.resolve(
                response,
                lambda guid: self.client.exchange(
                    "GET", endpoints.application_pending_result(app_guid, guid)
                ),
            )
            packages = {DeliveryPackage.model_validate(item) for item in data or []}

            invalid = invalid_packages(list(packages))
            if invalid:
                # In-place applications tolerate missing paths unless told otherwise
                if not fail_on_invalid_path:
                    application = await self.get_application_from_guid(app_guid)
                    fail_on_invalid_path = not (application and application.in_place_mode)
                if fail_on_invalid_path:
                    raise PackagePathInvalidException(invalid)
            return packages
        except (ApiCallException, ApplicationServiceException, ValidationError) as e:
            raise JobServiceException(f"Error discovering packages: {e}")

    async def create_delivery_configuration(
        self,
        app_guid: str,
        source_path: str,
        exclusions: Exclusions,
        rescan: bool = False,
        min_status: VersionStatus = VersionStatus.DELIVERED,
        fail_on_invalid_path: bool = False,
    ) -> Optional[str]:
        """Post a delivery configuration and return its GUID.

        On a rescan, packages are discovered against the latest version whose
        status is at least ``min_status``.
        """
        api_info = await self.client.get_api_info()
        flag = "enabled" if api_info.enable_package_path_check else "disabled"
        logger.info(f"Package path check option is {flag}")

        try:
            previous_version = select_version(
                await self.get_application_versions(app_guid), min_status=min_status
            )
            packages: Set[DeliveryPackage] = set()
            if rescan and previous_version and api_info.enable_package_path_check:
                packages = await self.discover_packages(
                    app_guid, source_path, previous_version.guid, fail_on_invalid_path
                )

            configuration = DeliveryConfiguration(
                ignore_patterns=exclusions.ignore_patterns(),
                exclusion_rules=exclusions.exclusion_rules(),
                packages=sorted(packages, key=lambda p: p.name),
            )
            logger.info(f"Exclusion patterns: {', '.join(configuration.ignore_patterns)}")
            logger.info(
                "Project exclusion rules: "
                + ", ".join(rule.rule for rule in configuration.exclusion_rules)
            )

            data = await self.client.post(
                endpoints.delivery_configuration(app_guid), configuration.to_payload()
            )
            logger.debug(f"Delivery configuration response {data}")
            return data.get("guid") if isinstance(data, dict) else None
        except (ApplicationServiceException, ApiCallException) as e:
            logger.error("Failed to create the delivery configuration")
            raise JobServiceException(f"Error creating delivery config: {e}")

    # Best-effort updates

    async def _put_best_effort(self, endpoint: str, value) -> None:
        try:
            await self.client.put(endpoint, {"data": value})
        except ApiCallException as e:
            logger.warning(e.message)

    async def update_security_dataflow(self, app_guid: str, enabled: bool, technology_path: str) -> None:
        await self._put_best_effort(endpoints.security_dataflow(app_guid, technology_path), enabled)

    async def update_show_sql_debug_option(self, app_guid: str, show_sql: bool) -> None:
        await self._put_best_effort(endpoints.debug_option_show_sql(app_guid), show_sql)

    async def update_amt_profile_debug_option(self, app_guid: str, amt_profile: bool) -> None:
        await self._put_best_effort(endpoints.debug_option_amt_profile(app_guid), amt_profile)

    async def get_debug_options(self, app_guid: str) -> Dict[str, bool]:
        try:
            data = await self.client.get(endpoints.debug_options(app_guid)) or {}
        except ApiCallException:
            return {"showSql": False, "activateAmtMemoryProfile": False}
        return {
            "showSql": bool(data.get("showSql")),
            "activateAmtMemoryProfile": bool(data.get("activateAmtMemoryProfile")),
        }

    async def reset_debug_options(self, app_guid: str, options: Dict[str, bool]) -> None:
        await self.update_show_sql_debug_option(app_guid, options.get("showSql", False))
        await self.update_amt_profile_debug_option(
            app_guid, options.get("activateAmtMemoryProfile", False)
        )

    async def set_module_generation_type(
        self, app_guid: str, generation_type: Optional[ModuleGenerationType]
    ) -> None:
        # The endpoint only accepts full_content and one_per_analysis_unit
        if generation_type is None or generation_type == ModuleGenerationType.ONE_PER_TECHNO:
            return
        await self._put_best_effort(endpoints.module_generation_type(app_guid), generation_type.value)

    # Misc

    async def check_server_folders_exists(self, path: str) -> bool:
        try:
            await self.client.post(
                endpoints.SERVER_FOLDERS, {"command": "LS", "path": f"SOURCES:{path}"}
            )
        except ApiCallException:
            return False
        return True

    async def download_delivery_report(self, app_guid: str, version_guid: str) -> str:
        try:
            data = await self.client.get(endpoints.delivery_report(app_guid, version_guid))
        except ApiCallException as e:
            raise ApplicationServiceException(f"Failed to download the delivery report: {e}")
        return data if isinstance(data, str) else str(data or "")

    async def list_function_point_rules(self, app_guid: str) -> Dict[str, List[FunctionPointRule]]:
        """Return the function point rules grouped by lower-cased type."""
        try:
            data = await self.client.get(endpoints.function_point_rules(app_guid)) or []
            rules = [FunctionPointRule.model_validate(item) for item in data]
        except (ApiCallException, ValidationError) as e:
            raise ApplicationServiceException(f"Unable to get function point rules: {e}")

        grouped: Dict[str, List[FunctionPointRule]] = {}
        for rule in rules:
            grouped.setdefault(rule.type.lower(), []).append(rule)
        return grouped

    async def check_rule_content(
        self, app_guid: str, rule_id: Optional[str] = None, rule_type: Optional[str] = None
    ) -> List[RuleContent]:
        """Return the content of the function point rules matching an id or a type."""
        payload = {key: value for key, value in (("ruleId", rule_id), ("ruleType", rule_type)) if value}
        try:
            data = await self.client.post(endpoints.function_point_rule_content(app_guid), payload) or []
            return [RuleContent.model_validate(item) for item in data]
        except (ApiCallException, ValidationError) as e:
            raise ApplicationServiceException(f"Unable to get the rule content: {e}")

    async def update_function_point_settings(self, app_guid: str, values: Dict[str, str]) -> None:
        for key, value in values.items():
            await self.client.request(
                "PUT", endpoints.function_point_setting(app_guid, key), params={"value": value}
            )
            logger.info(f"Updated {key} to {value}")

    async def update_module_generation_type(
        self,
        app_guid: str,
        request: JobRequest,
        generation_type: Optional[ModuleGenerationType],
        first_version: bool,
    ) -> None:
        """Apply a module generation type either on the application or on the job."""
        if generation_type is None or generation_type == ModuleGenerationType.PRESERVE_CONFIGURED:
            return
        if generation_type == ModuleGenerationType.FULL_CONTENT or (
            not first_version and generation_type == ModuleGenerationType.ONE_PER_AU
        ):
            await self.set_module_generation_type(app_guid, generation_type)
            logger.info(f"Module option has been set to {generation_type.value}")
        else:
            request.module_generation_type = generation_type.value

    # Import from CSS servers

    async def get_css_servers(self) -> List[CssServer]:
        try:
            data = await self.client.get(endpoints.CSS_SETTINGS) or []
            return [CssServer.model_validate(item) for item in data]
        except (ApiCallException, ValidationError) as e:
            raise ApplicationServiceException(f"Unable to get css server list: {e}")

    async def get_importable_applications(self, css_guid: str) -> List[ImportableApplication]:
        try:
            data = await self.client.get(endpoints.css_server_applications(css_guid)) or []
            return [ImportableApplication.model_validate(item) for item in data]
        except (ApiCallException, ValidationError) as e:
            raise ApplicationServiceException(
                f"Unable to get importable applications of css server {css_guid}: {e}"
            )

    async def import_applications(
        self, css_guid: str, applications: List[ImportableApplication]
    ) -> List[ImportedApplication]:
        """Import applications from a CSS server and wait for the outcome."""
        payload = {"data": [app.model_dump(by_alias=True, exclude_none=True) for app in applications]}
        response = await self.client.exchange(
            "POST", endpoints.css_server_import(css_guid), json_data=payload
        )
        data = await self.import_poller.resolve(
            response,
            lambda guid: self.client.exchange("GET", endpoints.pending_result(guid)),
        )
        try:
            return [ImportedApplication.model_validate(item) for item in data or []]
        except ValidationError as e:
            raise ApplicationServiceException(f"Unexpected import result from css server {css_guid}: {e}")
