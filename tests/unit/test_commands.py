"""Unit tests for the console commands, run against mocked services."""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from aip_console_tools import commands
from aip_console_tools.commands.base import default_snapshot_name, exit_code_for
from aip_console_tools.commands.deliver import default_version_name
from aip_console_tools.commands.function_points import parse_settings
from aip_console_tools.exceptions import (
    ApiCallException,
    ApiKeyMissingException,
    ApplicationServiceException,
    ConfigurationException,
    ExitCode,
    JobAbortedException,
    PackagePathInvalidException,
    UploadException,
)
from aip_console_tools.models.application_models import (
    ApiInfo,
    CssServer,
    ImportableApplication,
    ImportedApplication,
    RuleContent,
    VersionStatus,
)
from aip_console_tools.models.command_models import (
    AnalyzeOptions,
    ArchitectureStudioOptions,
    CheckRuleContentOptions,
    ComputeFunctionPointsOptions,
    CreateApplicationOptions,
    DeepAnalyzeOptions,
    DeliverOptions,
    FastScanOptions,
    ImportApplicationsOptions,
    ListFunctionPointRulesOptions,
    OnboardOptions,
    PublishToImagingOptions,
    SnapshotOptions,
    UpdateSettingsOptions,
)
from aip_console_tools.models.job_models import JobType

from ..test_utils import make_status, make_version


def started_request(session):
    """The JobRequest handed to ``start_job``."""
    return session.jobs.start_job.call_args.args[0]


class TestHelpers:
    """Test naming helpers and exception mapping."""

    def test_default_names(self):
        now = datetime(2024, 3, 5, 14, 7, 9, 120000)

        assert default_version_name(now) == "v240305.140709"
        assert default_snapshot_name(now) == "Snapshot-2024-03-05T14:07:09.120"

    @pytest.mark.parametrize(
        "error, expected",
        [
            (JobAbortedException("job-1"), ExitCode.JOB_ABORTED),
            (PackagePathInvalidException([]), ExitCode.PACKAGE_PATH_INVALID),
            (UploadException("bad"), ExitCode.UPLOAD_ERROR),
            (ApplicationServiceException("bad"), ExitCode.APPLICATION_INFO_MISSING),
            (ApiKeyMissingException(), ExitCode.NO_PASSWORD),
            (ConfigurationException("bad"), ExitCode.INVALID_PARAMETERS),
            (ApiCallException("bad", status_code=500), ExitCode.JOB_POLL_ERROR),
            (ValueError("bad"), ExitCode.UNKNOWN_ERROR),
        ],
    )
    def test_exit_code_for(self, error, expected):
        assert exit_code_for(error) == expected


class TestAnalyze:
    """Test the analyze command."""

    @pytest.mark.asyncio
    async def test_latest_version_is_analyzed(self, session, sample_versions):
        session.applications.get_application_versions.return_value = sample_versions

        exit_code = await commands.analyze(session, AnalyzeOptions(app_name="MyApp"))

        assert exit_code == ExitCode.OK
        request = started_request(session)
        assert request.job_type == JobType.ANALYZE
        assert request.version_name == "v2"
        assert request.steps == ["analyze", "analyze"]

    @pytest.mark.asyncio
    async def test_delivered_version_starts_with_acceptance(self, session, sample_versions):
        session.applications.get_application_versions.return_value = sample_versions

        await commands.analyze(session, AnalyzeOptions(app_name="MyApp", version_name="v1"))

        request = started_request(session)
        assert request.version_guid == "guid-v1"
        assert request.start_step == "accept"

    @pytest.mark.asyncio
    async def test_snapshot_without_publication(self, session, sample_versions):
        session.applications.get_application_versions.return_value = sample_versions

        await commands.analyze(
            session,
            AnalyzeOptions(app_name="MyApp", snapshot=True, snapshot_name="S1", consolidation=False),
        )

        request = started_request(session)
        assert request.end_step == "snapshot_indicator"
        assert request.snapshot_name == "S1"
        assert request.upload_application is False

    @pytest.mark.asyncio
    async def test_snapshot_with_imaging_forces_consolidation(self, session, sample_versions):
        session.applications.get_application_versions.return_value = sample_versions

        await commands.analyze(
            session,
            AnalyzeOptions(app_name="MyApp", snapshot=True, process_imaging=True, consolidation=False),
        )

        request = started_request(session)
        assert request.end_step == "upload_application"
        assert request.upload_application is True
        assert request.process_imaging is True
        assert request.snapshot_name.startswith("Snapshot-")

    @pytest.mark.asyncio
    async def test_module_option_is_applied(self, session, sample_versions):
        session.applications.get_application_versions.return_value = sample_versions

        await commands.analyze(
            session, AnalyzeOptions(app_name="MyApp", module_generation_type="one_per_analysis_unit")
        )

        session.applications.update_module_generation_type.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_debug_options_restored_after_job(self, session, sample_versions):
        session.applications.get_application_versions.return_value = sample_versions
        previous = {"showSql": False, "activateAmtMemoryProfile": True}
        session.applications.get_debug_options.return_value = previous
        session.jobs.poll_and_wait_for_job_finished.side_effect = JobAbortedException("job-guid-1")

        with pytest.raises(JobAbortedException):
            await commands.analyze(session, AnalyzeOptions(app_name="MyApp", show_sql=True))

        session.applications.update_show_sql_debug_option.assert_awaited_once_with("app-guid-1", True)
        session.applications.update_amt_profile_debug_option.assert_awaited_once_with("app-guid-1", False)
        session.applications.reset_debug_options.assert_awaited_once_with("app-guid-1", previous)

    @pytest.mark.asyncio
    async def test_debug_options_untouched_by_default(self, session, sample_versions):
        session.applications.get_application_versions.return_value = sample_versions

        await commands.analyze(session, AnalyzeOptions(app_name="MyApp"))

        session.applications.get_debug_options.assert_not_awaited()
        session.applications.reset_debug_options.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_application(self, session):
        session.applications.get_application_from_name.return_value = None

        exit_code = await commands.analyze(session, AnalyzeOptions(app_name="Nope"))

        assert exit_code == ExitCode.APPLICATION_NOT_FOUND
        session.jobs.start_job.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_version(self, session):
        session.applications.get_application_versions.return_value = []

        assert await commands.analyze(session, AnalyzeOptions(app_name="MyApp")) == ExitCode.APPLICATION_NO_VERSION

    @pytest.mark.asyncio
    async def test_unknown_version_name(self, session, sample_versions):
        session.applications.get_application_versions.return_value = sample_versions

        exit_code = await commands.analyze(session, AnalyzeOptions(app_name="MyApp", version_name="v9"))

        assert exit_code == ExitCode.APPLICATION_VERSION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_failed_job(self, session, sample_versions):
        session.applications.get_application_versions.return_value = sample_versions
        session.jobs.poll_and_wait_for_job_finished.return_value = make_status(
            "failed", "analyze", failureStep="analyze"
        )

        assert await commands.analyze(session, AnalyzeOptions(app_name="MyApp")) == ExitCode.JOB_FAILED


class TestSnapshot:
    """Test the snapshot command."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "api_version, end_step", [("1.15.3", "consolidate_snapshot"), ("1.16.0", "upload_application")]
    )
    async def test_end_step_depends_on_api_version(
        self, session, mock_client, sample_versions, api_version, end_step
    ):
        mock_client.get_api_info.return_value = ApiInfo(apiVersion=api_version)
        session.applications.get_application_versions.return_value = sample_versions

        exit_code = await commands.snapshot(session, SnapshotOptions(app_name="MyApp", snapshot_name="S1"))

        assert exit_code == ExitCode.OK
        request = started_request(session)
        assert request.start_step == "snapshot"
        assert request.end_step == end_step
        assert request.version_guid == "guid-v2"
        assert request.snapshot_name == "S1"

    @pytest.mark.asyncio
    async def test_requires_an_analyzed_version(self, session):
        session.applications.get_application_versions.return_value = [
            make_version("v1", VersionStatus.DELIVERED)
        ]

        exit_code = await commands.snapshot(session, SnapshotOptions(app_name="MyApp"))

        assert exit_code == ExitCode.APPLICATION_NO_VERSION

    @pytest.mark.asyncio
    async def test_named_version_must_exist(self, session, sample_versions):
        session.applications.get_application_versions.return_value = sample_versions

        exit_code = await commands.snapshot(session, SnapshotOptions(app_name="MyApp", version_name="v9"))

        assert exit_code == ExitCode.APPLICATION_VERSION_NOT_FOUND


class TestDeliver:
    """Test the deliver command."""

    @pytest.mark.asyncio
    async def test_clone_from_server_folder(self, session):
        session.applications.application_has_version.return_value = True

        exit_code = await commands.deliver(
            session,
            DeliverOptions(
                app_name="MyApp",
                file_path="app/src",
                version_name="V2",
                clone_version=True,
                security_dataflow=True,
            ),
        )

        assert exit_code == ExitCode.OK
        request = started_request(session)
        assert request.job_type == JobType.CLONE_VERSION
        assert request.source_path == "sources:app/src"
        assert request.version_name == "V2"
        assert request.delivery_config_guid == "delivery-config-guid"
        assert request.end_step == "deliver_version"
        assert "SECURITY" in request.objectives
        assert session.applications.create_delivery_configuration.call_args.kwargs["rescan"] is True
        assert session.applications.update_security_dataflow.await_count == 2

    @pytest.mark.asyncio
    async def test_add_version_from_archive(self, session, tmp_path):
        archive = tmp_path / "sources.zip"
        archive.write_bytes(b"PK")

        await commands.deliver(
            session,
            DeliverOptions(app_name="MyApp", file_path=str(archive), set_as_current=True, blueprint=True),
        )

        request = started_request(session)
        assert request.job_type == JobType.ADD_VERSION
        assert request.source_path == "upload:MyApp/sources.zip"
        assert request.end_step == "set_as_current"
        assert request.objectives == ["BLUEPRINT"]
        assert request.version_name.startswith("v")
        session.uploads.upload_file_and_get_source_path.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_application_without_auto_create(self, session):
        session.applications.get_application_guid_from_name.return_value = None

        exit_code = await commands.deliver(session, DeliverOptions(app_name="New", file_path="src"))

        assert exit_code == ExitCode.APPLICATION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_auto_create_then_add_version(self, session):
        session.applications.get_application_guid_from_name.return_value = None
        session.applications.get_or_create_application_from_name.return_value = "new-app"

        exit_code = await commands.deliver(
            session,
            DeliverOptions(app_name="New", file_path="src", auto_create=True, clone_version=True),
        )

        assert exit_code == ExitCode.OK
        request = started_request(session)
        assert request.app_guid == "new-app"
        assert request.job_type == JobType.ADD_VERSION

    @pytest.mark.asyncio
    async def test_missing_server_folder(self, session):
        session.applications.check_server_folders_exists.return_value = False

        exit_code = await commands.deliver(session, DeliverOptions(app_name="MyApp", file_path="nowhere"))

        assert exit_code == ExitCode.SOURCE_FOLDER_NOT_FOUND
        session.jobs.start_job.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_report_downloaded_after_success(self, session, tmp_path):
        session.applications.get_application_versions.return_value = [
            make_version("V3", VersionStatus.DELIVERED, guid="version-3")
        ]
        session.applications.download_delivery_report.return_value = "<report/>"

        await commands.deliver(
            session,
            DeliverOptions(app_name="MyApp", file_path="src", version_name="V3", report_dir=str(tmp_path)),
        )

        reports = list(tmp_path.glob("V3-report-*.xml"))
        assert len(reports) == 1
        assert reports[0].read_text(encoding="utf-8") == "<report/>"
        session.applications.download_delivery_report.assert_awaited_once_with("app-guid-1", "version-3")


class TestCreateApplication:
    """Test the create-application command."""

    @pytest.mark.asyncio
    async def test_existing_application_is_ok(self, session):
        exit_code = await commands.create_application(session, CreateApplicationOptions(app_name="MyApp"))

        assert exit_code == ExitCode.OK
        session.jobs.start_create_application.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_creates_application(self, session):
        session.applications.get_application_guid_from_name.return_value = None
        session.jobs.get_css_guid.return_value = "css-1"

        exit_code = await commands.create_application(
            session, CreateApplicationOptions(app_name="New", css_server_name="css_db", in_place_mode=True)
        )

        assert exit_code == ExitCode.OK
        session.jobs.start_create_application.assert_awaited_once_with(
            "New", node_name=None, domain_name=None, in_place_mode=True, css_guid="css-1"
        )

    @pytest.mark.asyncio
    async def test_unknown_css_server(self, session):
        session.applications.get_application_guid_from_name.return_value = None
        session.jobs.get_css_guid.return_value = None

        exit_code = await commands.create_application(
            session, CreateApplicationOptions(app_name="New", css_server_name="missing")
        )

        assert exit_code == ExitCode.INVALID_PARAMETERS


class TestFastScanWorkflow:
    """Test fast-scan, deep-analyze, publish and onboard."""

    @pytest.mark.asyncio
    async def test_fast_scan_requires_onboarding_mode(self, session):
        session.applications.is_onboarding_settings_enabled.return_value = False

        exit_code = await commands.fast_scan(session, FastScanOptions(app_name="MyApp", file_path="src.zip"))

        assert exit_code == ExitCode.ONBOARD_APPLICATION_DISABLED

    @pytest.mark.asyncio
    async def test_fast_scan_onboards_new_application(self, session):
        session.applications.get_application_details_from_name.return_value = None
        session.jobs.start_onboard_application.return_value = "onboard-job"
        session.jobs.start_fast_scan.return_value = "scan-job"
        session.jobs.poll_and_wait_for_job_finished.side_effect = [
            make_status("completed", jobParameters={"appGuid": "new-app"}),
            make_status("completed"),
        ]

        exit_code = await commands.fast_scan(
            session, FastScanOptions(app_name="New", file_path="src.zip", domain_name="Dom")
        )

        assert exit_code == ExitCode.OK
        session.jobs.start_onboard_application.assert_awaited_once_with("New", domain_name="Dom")
        create_config = session.applications.create_delivery_configuration.call_args
        assert create_config.args[:2] == ("new-app", "upload:sources.zip")
        assert create_config.kwargs == {"rescan": True, "fail_on_invalid_path": True}
        assert session.jobs.start_fast_scan.call_args.kwargs["delivery_config_guid"] == "delivery-config-guid"

    @pytest.mark.asyncio
    async def test_deep_analyze_requires_fast_scan(self, session):
        session.applications.get_application_details_from_name.return_value = None

        exit_code = await commands.deep_analyze(session, DeepAnalyzeOptions(app_name="New"))

        assert exit_code == ExitCode.ONBOARD_FAST_SCAN_REQUIRED

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "module_type, expected",
        [("one_per_techno", "one_per_techno"), ("one_per_analysis_unit", "one_per_analysis_unit"), ("full_content", None)],
    )
    async def test_deep_analyze_module_type(self, session, module_type, expected):
        await commands.deep_analyze(
            session, DeepAnalyzeOptions(app_name="MyApp", module_generation_type=module_type)
        )

        kwargs = session.jobs.start_deep_analysis.call_args.kwargs
        assert kwargs["module_generation_type"] == expected
        assert kwargs["process_imaging"] is True

    @pytest.mark.asyncio
    async def test_deep_analyze_names_engineering_snapshot(self, session):
        await commands.deep_analyze(session, DeepAnalyzeOptions(app_name="MyApp", publish_to_engineering=True))

        kwargs = session.jobs.start_deep_analysis.call_args.kwargs
        assert kwargs["snapshot_name"].startswith("Snapshot-")
        assert kwargs["publish_to_engineering"] is True

    @pytest.mark.asyncio
    async def test_publish_rejects_unpublishable_version(self, session, sample_application):
        session.applications.application_has_version.return_value = True
        session.applications.get_application_details.return_value = sample_application.model_copy(
            update={"version": make_version("v1", VersionStatus.DELIVERED)}
        )

        exit_code = await commands.publish_to_imaging(session, PublishToImagingOptions(app_name="MyApp"))

        assert exit_code == ExitCode.ONBOARD_VERSION_STATUS_INVALID

    @pytest.mark.asyncio
    @pytest.mark.parametrize("onboarded", [True, False])
    async def test_publish_job_depends_on_workflow(self, session, sample_application, onboarded):
        session.applications.application_has_version.return_value = True
        session.applications.get_application_details.return_value = sample_application.model_copy(
            update={"version": make_version("v1", VersionStatus.ANALYZED), "onboarded": onboarded}
        )
        session.jobs.start_deep_analysis.return_value = "deep-job"
        session.jobs.start_publish_to_imaging.return_value = "publish-job"

        exit_code = await commands.publish_to_imaging(session, PublishToImagingOptions(app_name="MyApp"))

        assert exit_code == ExitCode.OK
        if onboarded:
            assert session.jobs.start_deep_analysis.call_args.kwargs["process_imaging"] is True
            session.jobs.start_publish_to_imaging.assert_not_awaited()
        else:
            session.jobs.start_publish_to_imaging.assert_awaited_once_with("app-guid-1")

    @pytest.mark.asyncio
    async def test_publish_without_version(self, session):
        session.applications.application_has_version.return_value = False

        exit_code = await commands.publish_to_imaging(session, PublishToImagingOptions(app_name="MyApp"))

        assert exit_code == ExitCode.APPLICATION_NO_VERSION

    @pytest.mark.asyncio
    async def test_onboard_first_scan_of_new_application(self, session, sample_application):
        session.applications.get_application_from_name.side_effect = [None, sample_application]
        session.jobs.start_onboard_application.return_value = "onboard-job"
        session.jobs.start_discover_application.return_value = "discover-job"
        session.jobs.start_deep_analysis.return_value = "deep-job"
        session.jobs.poll_and_wait_for_job_finished.side_effect = [
            make_status("completed", jobParameters={"appGuid": "new-app"}),
            make_status("completed"),
            make_status("completed"),
        ]

        exit_code = await commands.onboard(
            session, OnboardOptions(app_name="New", file_path="src.zip", domain_name="Dom")
        )

        assert exit_code == ExitCode.OK
        session.uploads.upload_file_for_onboarding.assert_awaited_once_with("src.zip", None)
        session.jobs.start_onboard_application.assert_awaited_once_with(
            "New", domain_name="Dom", source_path="upload:sources.zip"
        )
        session.jobs.start_discover_application.assert_awaited_once_with(
            "new-app", "upload:sources.zip", version_name="", caip_version="8.3.50", target_node="node-1"
        )
        session.applications.get_application_onboarding.assert_awaited_once_with("new-app")
        assert session.jobs.start_deep_analysis.call_args.args == ("new-app",)
        session.jobs.start_fast_scan.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_onboard_refreshes_application_never_published(self, session):
        session.jobs.start_discover_application.return_value = "discover-job"

        exit_code = await commands.onboard(session, OnboardOptions(app_name="MyApp", file_path="src.zip"))

        assert exit_code == ExitCode.OK
        session.uploads.upload_file_for_onboarding.assert_awaited_once_with("src.zip", "app-guid-1")
        session.jobs.start_onboard_application.assert_not_awaited()
        assert session.jobs.start_discover_application.call_args.args == ("app-guid-1", "upload:sources.zip")
        session.jobs.start_deep_analysis.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_onboard_rescans_published_application(self, session, sample_application):
        session.applications.get_application_details.return_value = sample_application.model_copy(
            update={
                "version": make_version("v1", VersionStatus.ANALYZED),
                "imaging_tenant": "default",
                "caip_version": "8.3.60",
                "target_node": "node-2",
            }
        )

        exit_code = await commands.onboard(session, OnboardOptions(app_name="MyApp", file_path="src.zip"))

        assert exit_code == ExitCode.OK
        session.uploads.upload_file_for_onboarding.assert_not_awaited()
        session.jobs.start_discover_application.assert_not_awaited()
        kwargs = session.jobs.start_deep_analysis.call_args.kwargs
        assert kwargs["caip_version"] == "8.3.60"
        assert kwargs["target_node"] == "node-2"

    @pytest.mark.asyncio
    async def test_onboard_stops_when_discovery_fails(self, session):
        session.jobs.poll_and_wait_for_job_finished.return_value = make_status("failed", "discover")

        exit_code = await commands.onboard(session, OnboardOptions(app_name="MyApp", file_path="src.zip"))

        assert exit_code == ExitCode.JOB_FAILED
        session.jobs.start_deep_analysis.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_onboard_restores_onboarding_mode(self, session):
        session.applications.is_onboarding_settings_enabled.side_effect = [False, True]

        exit_code = await commands.onboard(session, OnboardOptions(app_name="MyApp", file_path="src.zip"))

        assert exit_code == ExitCode.OK
        assert [c.args for c in session.applications.set_enable_onboarding.await_args_list] == [(True,), (False,)]

    @pytest.mark.asyncio
    async def test_onboard_stops_when_imaging_unavailable(self, session):
        session.applications.is_imaging_available.return_value = False

        exit_code = await commands.onboard(session, OnboardOptions(app_name="MyApp", file_path="src.zip"))

        assert exit_code == ExitCode.RUN_ANALYSIS_DISABLED
        session.jobs.start_deep_analysis.assert_not_awaited()
        session.applications.set_enable_onboarding.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_onboard_restores_mode_on_abort(self, session):
        session.applications.is_onboarding_settings_enabled.side_effect = [False, True]
        session.jobs.poll_and_wait_for_job_finished.side_effect = JobAbortedException("discover-job")

        with pytest.raises(JobAbortedException):
            await commands.onboard(session, OnboardOptions(app_name="MyApp", file_path="src.zip"))

        session.applications.set_enable_onboarding.assert_awaited_with(False)


class TestImports:
    """Test listing and importing applications from CSS servers."""

    @pytest.fixture(autouse=True)
    def css_servers(self, session):
        session.applications.get_css_servers.return_value = [CssServer(guid="css-1", databaseName="css_db")]
        session.applications.get_importable_applications.return_value = [
            ImportableApplication(appName="A"),
            ImportableApplication(appName="B"),
        ]

    @pytest.mark.asyncio
    async def test_list(self, session):
        assert await commands.list_importable_applications(session) == ExitCode.OK

    @pytest.mark.asyncio
    async def test_names_or_all_required(self, session):
        exit_code = await commands.import_applications(session, ImportApplicationsOptions())

        assert exit_code == ExitCode.INVALID_PARAMETERS

    @pytest.mark.asyncio
    async def test_unknown_name_rejected(self, session):
        exit_code = await commands.import_applications(session, ImportApplicationsOptions(app_names=["A", "Z"]))

        assert exit_code == ExitCode.INVALID_PARAMETERS
        session.applications.import_applications.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_import_selected(self, session):
        session.applications.import_applications.return_value = [ImportedApplication(appName="A", imported=True)]

        exit_code = await commands.import_applications(session, ImportApplicationsOptions(app_names=["A"]))

        assert exit_code == ExitCode.OK
        server_guid, apps = session.applications.import_applications.call_args.args
        assert server_guid == "css-1"
        assert [app.app_name for app in apps] == ["A"]

    @pytest.mark.asyncio
    async def test_failed_import(self, session):
        session.applications.import_applications.return_value = [
            ImportedApplication(appName="A", imported=True),
            ImportedApplication.model_validate(
                {"appName": "B", "imported": False, "error": {"code": "E1", "defaultMessage": "exists"}}
            ),
        ]

        exit_code = await commands.import_applications(session, ImportApplicationsOptions(import_all=True))

        assert exit_code == ExitCode.JOB_FAILED


class TestFunctionPoints:
    """Test function point commands."""

    @pytest.mark.parametrize(
        "value, valid",
        [
            ("FILTER_LOOKUP_TABLES=true", True),
            ("FILTER_LOOKUP_TABLES=true,DEFAULT_DATA_FUNCTION_TYPE=EIF", True),
            ("FILTER_LOOKUP_TABLES=maybe", False),
            ("UNKNOWN_KEY=true", False),
            ("FILTER_LOOKUP_TABLES", False),
            ("", False),
        ],
    )
    def test_parse_settings(self, value, valid):
        parsed, error = parse_settings(value)

        assert (parsed is not None) == valid
        assert (error is None) == valid

    @pytest.mark.asyncio
    async def test_update_settings(self, session):
        exit_code = await commands.update_settings(
            session, UpdateSettingsOptions(app_name="MyApp", new_settings="DEFAULT_TRANSACTION_FUNCTION_TYPE=EO")
        )

        assert exit_code == ExitCode.OK
        session.applications.update_function_point_settings.assert_awaited_once_with(
            "app-guid-1", {"DEFAULT_TRANSACTION_FUNCTION_TYPE": "EO"}
        )

    @pytest.mark.asyncio
    async def test_update_settings_invalid_value(self, session):
        exit_code = await commands.update_settings(
            session, UpdateSettingsOptions(app_name="MyApp", new_settings="bad value!")
        )

        assert exit_code == ExitCode.INVALID_PARAMETERS
        session.applications.update_function_point_settings.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unmanaged_application(self, session, sample_application):
        session.applications.get_application_details.return_value = sample_application.model_copy(
            update={"managed": False}
        )

        exit_code = await commands.compute_function_points(
            session, ComputeFunctionPointsOptions(app_name="MyApp")
        )

        assert exit_code == ExitCode.APPLICATION_INFO_MISSING

    @pytest.mark.asyncio
    async def test_compute_without_waiting(self, session):
        session.jobs.start_compute_function_points.return_value = "fp-job"

        exit_code = await commands.compute_function_points(
            session, ComputeFunctionPointsOptions(app_name="MyApp", wait=False)
        )

        assert exit_code == ExitCode.OK
        session.jobs.poll_and_wait_for_job_finished.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_list_rules_with_unknown_type(self, session):
        session.applications.list_function_point_rules.return_value = {"data": []}

        exit_code = await commands.list_function_point_rules(
            session, ListFunctionPointRulesOptions(app_name="MyApp", rule_type="transaction")
        )

        assert exit_code == ExitCode.INVALID_PARAMETERS

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "rule_id, rule_type", [("1020", None), (None, "DATA")]
    )
    async def test_check_rule_content(self, session, rule_id, rule_type):
        session.applications.check_rule_content.return_value = [RuleContent(id="1020", name="Table")]

        exit_code = await commands.check_rule_content(
            session, CheckRuleContentOptions(app_name="MyApp", rule_id=rule_id, rule_type=rule_type)
        )

        assert exit_code == ExitCode.OK
        session.applications.check_rule_content.assert_awaited_once_with(
            "app-guid-1", rule_id=rule_id, rule_type=rule_type
        )

    @pytest.mark.asyncio
    async def test_check_rule_content_without_content(self, session):
        session.applications.check_rule_content.return_value = []

        exit_code = await commands.check_rule_content(
            session, CheckRuleContentOptions(app_name="MyApp", rule_id="42")
        )

        assert exit_code == ExitCode.OK

    @pytest.mark.asyncio
    async def test_check_rule_content_needs_managed_application(self, session, sample_application):
        session.applications.get_application_details.return_value = sample_application.model_copy(
            update={"managed": False}
        )

        exit_code = await commands.check_rule_content(
            session, CheckRuleContentOptions(app_name="MyApp", rule_type="DATA")
        )

        assert exit_code == ExitCode.APPLICATION_INFO_MISSING
        session.applications.check_rule_content.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_check_rule_content_unknown_application(self, session):
        session.applications.get_application_details_from_name.return_value = None

        exit_code = await commands.check_rule_content(
            session, CheckRuleContentOptions(app_name="Nope", rule_type="DATA")
        )

        assert exit_code == ExitCode.APPLICATION_NOT_FOUND

    def test_check_rule_content_requires_rule(self):
        with pytest.raises(ValidationError):
            CheckRuleContentOptions(app_name="MyApp")


class TestArchitectureStudio:
    """Test the Architecture Studio model lookup."""

    @pytest.fixture(autouse=True)
    def recent_console(self, mock_client):
        mock_client.get_api_info.return_value = ApiInfo(apiVersion="2.8.1")

    @pytest.mark.asyncio
    async def test_model_and_application_found(self, session):
        exit_code = await commands.architecture_studio(
            session, ArchitectureStudioOptions(app_name="MyApp", model_name="layers")
        )

        assert exit_code == ExitCode.OK
        session.architecture.get_architecture_model.assert_awaited_once_with("layers")
        session.applications.get_application_from_name.assert_awaited_once_with("MyApp")

    @pytest.mark.asyncio
    async def test_unknown_model(self, session):
        session.architecture.get_architecture_model.return_value = None

        exit_code = await commands.architecture_studio(
            session, ArchitectureStudioOptions(app_name="MyApp", model_name="Missing")
        )

        assert exit_code == ExitCode.ARCHITECTURE_MODEL_NOT_FOUND
        session.applications.get_application_from_name.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_application(self, session):
        session.applications.get_application_from_name.return_value = None

        exit_code = await commands.architecture_studio(
            session, ArchitectureStudioOptions(app_name="Nope", model_name="Layers")
        )

        assert exit_code == ExitCode.APPLICATION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_blank_model_name(self, session):
        exit_code = await commands.architecture_studio(
            session, ArchitectureStudioOptions(app_name="MyApp", model_name="  ")
        )

        assert exit_code == ExitCode.APPLICATION_INFO_MISSING
        session.architecture.get_architecture_model.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_requires_recent_console(self, session, mock_client):
        mock_client.get_api_info.return_value = ApiInfo(apiVersion="2.7.9")

        exit_code = await commands.architecture_studio(
            session, ArchitectureStudioOptions(app_name="MyApp", model_name="Layers")
        )

        assert exit_code == ExitCode.SERVER_VERSION_NOT_COMPATIBLE
        session.architecture.get_architecture_model.assert_not_awaited()


class TestRunCommand:
    """Test the session wrapper used by the CLI and the build steps."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, expected",
        [
            (ApiKeyMissingException(), ExitCode.NO_PASSWORD),
            (ConfigurationException("No URL"), ExitCode.INVALID_PARAMETERS),
            (ApiCallException("refused"), ExitCode.LOGIN_ERROR),
        ],
    )
    async def test_login_failures(self, session, mock_client, mock_settings, error, expected):
        mock_client.validate_url_and_key.side_effect = error
        command = AsyncMock()

        exit_code = await commands.run_command(mock_settings, command, None, session=session)

        assert exit_code == expected
        command.assert_not_awaited()
        mock_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_aborted_command(self, session, mock_settings):
        command = AsyncMock(side_effect=JobAbortedException("job-1", cancelled=True))

        exit_code = await commands.run_command(mock_settings, command, None, session=session)

        assert exit_code == ExitCode.JOB_ABORTED

    @pytest.mark.asyncio
    async def test_service_errors_become_exit_codes(self, session, mock_settings):
        command = AsyncMock(side_effect=UploadException("too big"))

        exit_code = await commands.run_command(mock_settings, command, None, session=session)

        assert exit_code == ExitCode.UPLOAD_ERROR

    @pytest.mark.asyncio
    async def test_returns_command_exit_code(self, session, mock_settings):
        command = AsyncMock(return_value=ExitCode.APPLICATION_NOT_FOUND)

        exit_code = await commands.run_command(mock_settings, command, "options", session=session)

        assert exit_code == ExitCode.APPLICATION_NOT_FOUND
        command.assert_awaited_once_with(session, "options")
