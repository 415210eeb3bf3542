"""
Command-line interface for AIP Console, built with Typer and Rich.

Global options (server URL, API key, timeouts) go before the subcommand:

    aip-console --server-url http://console:8081 --api-key KEY analyze -n MyApp
"""

import asyncio
import os
import signal
import sys
from typing import Annotated, List, Optional

import typer
from pydantic import BaseModel, ValidationError
from rich.console import Console

from .. import commands
from ..config import Settings, get_settings
from ..exceptions import ExitCode
from ..models.command_models import (
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
from ..services.polling import CancellationToken
from ..utils.logging import get_logger, setup_logging

app = typer.Typer(
    name="aip-console",
    help="Run and follow AIP Console jobs from the command line",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()
logger = get_logger(__name__)

AppName = Annotated[str, typer.Option("--app-name", "-n", help="Application name")]
VersionName = Annotated[Optional[str], typer.Option("--version-name", help="Version name")]
SnapshotName = Annotated[Optional[str], typer.Option("--snapshot-name", "-S", help="Snapshot name")]
FilePath = Annotated[
    str,
    typer.Option("--file", "-f", help="Local archive (zip, tgz, tar.gz) or folder under the server source root"),
]
DomainName = Annotated[Optional[str], typer.Option("--domain-name", help="Domain of the application")]
NodeName = Annotated[Optional[str], typer.Option("--node-name", help="Node to create the application on")]
CssServer = Annotated[Optional[str], typer.Option("--css-server", help="CSS server name or host:port")]
ExcludePatterns = Annotated[
    Optional[str],
    typer.Option("--exclude-patterns", help="Comma separated exclusion patterns"),
]
ExclusionRules = Annotated[
    Optional[str], typer.Option("--exclusion-rules", help="Comma separated project exclusion rules")
]
ModuleOption = Annotated[
    Optional[str],
    typer.Option(
        "--module-option",
        help="full_content, one_per_analysis_unit, one_per_techno or preserve_configured",
    ),
]


def _split(value: Optional[str]) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class SignalInterrupter:
    """Route SIGINT / SIGTERM to a running command.

    The first signal cancels the token; when no poll loop is watching it
    (upload, delivery configuration) the command task is cancelled instead.
    The handlers are then removed, so a second signal gets the default
    behaviour and ends the process.
    """

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, loop: asyncio.AbstractEventLoop, token: CancellationToken, task: asyncio.Task):
        self.loop = loop
        self.token = token
        self.task = task
        self.installed: List[signal.Signals] = []

    def install(self) -> None:
        for sig in self.SIGNALS:
            try:
                self.loop.add_signal_handler(sig, self)
                self.installed.append(sig)
            except (NotImplementedError, RuntimeError):
                # Windows event loops have no signal handler support
                logger.debug(f"Cannot install handler for {sig!r}")

    def uninstall(self) -> None:
        for sig in self.installed:
            self.loop.remove_signal_handler(sig)
        self.installed = []

    def __call__(self) -> None:
        logger.warning("Interrupt received, stopping the command (interrupt again to force exit)")
        self.token.cancel()
        if not self.token.polling:
            self.task.cancel()
        self.uninstall()


async def _run_with_signals(settings: Settings, command, options) -> ExitCode:
    token = CancellationToken()
    task = asyncio.create_task(commands.run_command(settings, command, options, token=token))
    interrupter = SignalInterrupter(asyncio.get_running_loop(), token, task)
    interrupter.install()
    try:
        return await task
    except asyncio.CancelledError:
        logger.warning("Command interrupted before any job was polled")
        return ExitCode.JOB_ABORTED
    finally:
        interrupter.uninstall()


def execute(ctx: typer.Context, command, options_model: type, **values) -> None:
    """Validate options, run the command and exit with its code."""
    settings: Settings = ctx.obj or get_settings()
    try:
        options: BaseModel = options_model(**values)
    except ValidationError as e:
        console.print(f"[red]Invalid parameters:[/red] {e}")
        raise typer.Exit(int(ExitCode.INVALID_PARAMETERS))

    exit_code = asyncio.run(_run_with_signals(settings, command, options))

    style = "green" if exit_code == ExitCode.OK else "red"
    console.print(f"[{style}]Exit code: {exit_code.value} ({exit_code.name})[/{style}]")
    raise typer.Exit(int(exit_code))


@app.callback()
def main_options(
    ctx: typer.Context,
    server_url: Annotated[
        Optional[str], typer.Option("--server-url", "-s", help="AIP Console root URL")
    ] = None,
    api_key: Annotated[
        Optional[str], typer.Option("--api-key", help="API key, or password when --user is set")
    ] = None,
    api_key_env: Annotated[
        Optional[str],
        typer.Option("--api-key-env", help="Name of an environment variable holding the API key"),
    ] = None,
    user: Annotated[Optional[str], typer.Option("--user", help="User name for basic authentication")] = None,
    timeout: Annotated[
        Optional[int], typer.Option("--timeout", help="HTTP timeout in seconds")
    ] = None,
    sleep_duration: Annotated[
        Optional[float], typer.Option("--sleep-duration", help="Seconds between job status checks")
    ] = None,
    verbose: Annotated[
        Optional[bool], typer.Option("--verbose/--quiet", help="Stream job logs while polling")
    ] = None,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Logging level")] = None,
) -> None:
    """Connection options shared by every command."""
    if api_key_env and not api_key:
        api_key = os.getenv(api_key_env)

    try:
        ctx.obj = get_settings().with_overrides(
            console_url=server_url,
            api_key=api_key,
            username=user,
            http_timeout_seconds=timeout,
            poll_interval_seconds=sleep_duration,
            verbose=verbose,
            log_level=log_level,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid parameters:[/red] {e}")
        raise typer.Exit(int(ExitCode.INVALID_PARAMETERS))
    setup_logging(level=ctx.obj.log_level, console=console)


@app.command()
def analyze(
    ctx: typer.Context,
    app_name: AppName,
    version_name: VersionName = None,
    snapshot: Annotated[bool, typer.Option("--snapshot", help="Also take a snapshot")] = False,
    snapshot_name: SnapshotName = None,
    process_imaging: Annotated[bool, typer.Option("--process-imaging", help="Publish to Imaging")] = False,
    consolidation: Annotated[
        bool, typer.Option("--consolidation/--no-consolidation", help="Publish the snapshot to the dashboards")
    ] = True,
    module_option: ModuleOption = None,
    show_sql: Annotated[bool, typer.Option("--show-sql", help="Log SQL queries during the analysis")] = False,
    amt_profiling: Annotated[
        bool, typer.Option("--amt-profiling", help="Activate the AMT memory profile during the analysis")
    ] = False,
) -> None:
    """Analyze the latest delivered version (or the named one)."""
    execute(
        ctx,
        commands.analyze,
        AnalyzeOptions,
        app_name=app_name,
        version_name=version_name,
        snapshot=snapshot,
        snapshot_name=snapshot_name,
        process_imaging=process_imaging,
        consolidation=consolidation,
        module_generation_type=module_option,
        show_sql=show_sql,
        amt_profiling=amt_profiling,
    )


@app.command()
def deliver(
    ctx: typer.Context,
    app_name: AppName,
    file_path: FilePath,
    version_name: VersionName = None,
    version_date: Annotated[
        Optional[str], typer.Option("--date", help="Version release date, YYYY-MM-DDTHH:MM:SS")
    ] = None,
    auto_create: Annotated[bool, typer.Option("--auto-create", help="Create the application if missing")] = False,
    clone_version: Annotated[
        bool, typer.Option("--clone", "--rescan", help="Clone the configuration of the previous version")
    ] = False,
    node_name: NodeName = None,
    domain_name: DomainName = None,
    css_server: CssServer = None,
    in_place_mode: Annotated[bool, typer.Option("--in-place", help="Keep only the latest version")] = False,
    exclude_patterns: ExcludePatterns = None,
    exclusion_rules: ExclusionRules = None,
    blueprint: Annotated[bool, typer.Option("--blueprint", help="Enable the blueprint objective")] = False,
    security_dataflow: Annotated[
        bool, typer.Option("--security-dataflow", help="Enable the security dataflow objective")
    ] = False,
    data_safety: Annotated[bool, typer.Option("--data-safety", help="Enable the data safety objective")] = False,
    backup: Annotated[bool, typer.Option("--backup", help="Back up the application first")] = False,
    backup_name: Annotated[Optional[str], typer.Option("--backup-name", help="Backup name")] = None,
    auto_discover: Annotated[
        bool, typer.Option("--auto-discover/--no-auto-discover", help="Discover new technologies")
    ] = True,
    set_as_current: Annotated[
        bool, typer.Option("--set-as-current", help="Make the new version current")
    ] = False,
    module_option: ModuleOption = None,
    report_dir: Annotated[
        Optional[str], typer.Option("--report-dir", help="Directory for the delivery report")
    ] = ".",
) -> None:
    """Deliver a new version from an archive or a server folder."""
    execute(
        ctx,
        commands.deliver,
        DeliverOptions,
        app_name=app_name,
        file_path=file_path,
        version_name=version_name,
        version_date=version_date,
        auto_create=auto_create,
        clone_version=clone_version,
        node_name=node_name,
        domain_name=domain_name,
        css_server_name=css_server,
        in_place_mode=in_place_mode,
        exclusion_patterns=exclude_patterns,
        exclusion_rules=_split(exclusion_rules),
        blueprint=blueprint,
        security_dataflow=security_dataflow,
        data_safety=data_safety,
        backup=backup,
        backup_name=backup_name,
        auto_discover=auto_discover,
        set_as_current=set_as_current,
        module_generation_type=module_option,
        report_dir=report_dir,
    )


@app.command()
def snapshot(
    ctx: typer.Context,
    app_name: AppName,
    version_name: VersionName = None,
    snapshot_name: SnapshotName = None,
) -> None:
    """Take a snapshot of the latest analyzed version (or the named one)."""
    execute(
        ctx,
        commands.snapshot,
        SnapshotOptions,
        app_name=app_name,
        version_name=version_name,
        snapshot_name=snapshot_name,
    )


@app.command("create-app")
def create_app(
    ctx: typer.Context,
    app_name: AppName,
    node_name: NodeName = None,
    domain_name: DomainName = None,
    css_server: CssServer = None,
    in_place_mode: Annotated[bool, typer.Option("--in-place", help="Keep only the latest version")] = False,
) -> None:
    """Create an application."""
    execute(
        ctx,
        commands.create_application,
        CreateApplicationOptions,
        app_name=app_name,
        node_name=node_name,
        domain_name=domain_name,
        css_server_name=css_server,
        in_place_mode=in_place_mode,
    )


@app.command("fast-scan")
def fast_scan(
    ctx: typer.Context,
    app_name: AppName,
    file_path: FilePath,
    domain_name: DomainName = None,
    exclude_patterns: ExcludePatterns = None,
    exclusion_rules: ExclusionRules = None,
) -> None:
    """Onboard or refresh an application with a fast scan."""
    execute(
        ctx,
        commands.fast_scan,
        FastScanOptions,
        app_name=app_name,
        file_path=file_path,
        domain_name=domain_name,
        exclusion_patterns=exclude_patterns,
        exclusion_rules=_split(exclusion_rules),
    )


@app.command("deep-analyze")
def deep_analyze(
    ctx: typer.Context,
    app_name: AppName,
    snapshot_name: SnapshotName = None,
    module_option: ModuleOption = None,
    process_imaging: Annotated[
        bool, typer.Option("--process-imaging/--no-process-imaging", help="Publish to Imaging")
    ] = True,
    publish_engineering: Annotated[
        bool, typer.Option("--publish-engineering", help="Publish to the engineering dashboard")
    ] = False,
) -> None:
    """Run the deep analysis of a fast-scanned application."""
    execute(
        ctx,
        commands.deep_analyze,
        DeepAnalyzeOptions,
        app_name=app_name,
        snapshot_name=snapshot_name,
        module_generation_type=module_option,
        process_imaging=process_imaging,
        publish_to_engineering=publish_engineering,
    )


@app.command("publish-imaging")
def publish_imaging(ctx: typer.Context, app_name: AppName) -> None:
    """Publish application data to CAST Imaging."""
    execute(ctx, commands.publish_to_imaging, PublishToImagingOptions, app_name=app_name)


@app.command()
def onboard(
    ctx: typer.Context,
    app_name: AppName,
    file_path: FilePath,
    domain_name: DomainName = None,
    snapshot_name: SnapshotName = None,
    module_option: ModuleOption = None,
    process_imaging: Annotated[
        bool, typer.Option("--process-imaging/--no-process-imaging", help="Publish to Imaging")
    ] = True,
    publish_engineering: Annotated[
        bool, typer.Option("--publish-engineering", help="Publish to the engineering dashboard")
    ] = False,
) -> None:
    """First scan (or rescan) then deep analysis, with the onboarding mode on meanwhile."""
    execute(
        ctx,
        commands.onboard,
        OnboardOptions,
        app_name=app_name,
        file_path=file_path,
        domain_name=domain_name,
        snapshot_name=snapshot_name,
        module_generation_type=module_option,
        process_imaging=process_imaging,
        publish_to_engineering=publish_engineering,
    )


@app.command("import-apps")
def import_apps(
    ctx: typer.Context,
    app_names: Annotated[
        Optional[str], typer.Option("--app-names", help="Comma separated application names")
    ] = None,
    import_all: Annotated[bool, typer.Option("--all", "-a", help="Import every importable application")] = False,
) -> None:
    """Import applications from the registered CSS servers."""
    execute(
        ctx,
        commands.import_applications,
        ImportApplicationsOptions,
        app_names=_split(app_names),
        import_all=import_all,
    )


@app.command("list-import-apps")
def list_import_apps(ctx: typer.Context) -> None:
    """List the applications that can be imported."""
    execute(ctx, commands.list_importable_applications, ImportApplicationsOptions)


@app.command("compute-fp")
def compute_fp(
    ctx: typer.Context,
    app_name: AppName,
    wait: Annotated[bool, typer.Option("--wait/--no-wait", help="Wait for the computation to end")] = True,
) -> None:
    """Compute function points of a managed application."""
    execute(ctx, commands.compute_function_points, ComputeFunctionPointsOptions, app_name=app_name, wait=wait)


@app.command("list-fp-rules")
def list_fp_rules(
    ctx: typer.Context,
    app_name: AppName,
    rule_type: Annotated[Optional[str], typer.Option("--rule-type", help="Only list this rule type")] = None,
) -> None:
    """List function point rules, grouped by type."""
    execute(
        ctx,
        commands.list_function_point_rules,
        ListFunctionPointRulesOptions,
        app_name=app_name,
        rule_type=rule_type,
    )


@app.command("check-rule-content")
def check_rule_content(
    ctx: typer.Context,
    app_name: AppName,
    rule_id: Annotated[Optional[str], typer.Option("--rule-id", help="Rule id")] = None,
    rule_type: Annotated[Optional[str], typer.Option("--rule-type", help="Rule type")] = None,
) -> None:
    """Show the content of a function point rule, by id or by type."""
    execute(
        ctx,
        commands.check_rule_content,
        CheckRuleContentOptions,
        app_name=app_name,
        rule_id=rule_id,
        rule_type=rule_type,
    )


@app.command("update-settings")
def update_settings(
    ctx: typer.Context,
    app_name: AppName,
    new_settings: Annotated[
        str,
        typer.Option(
            "--new-settings",
            help='Comma separated setting=value pairs, e.g. "FILTER_LOOKUP_TABLES=true"',
        ),
    ],
) -> None:
    """Update function point computation settings."""
    execute(ctx, commands.update_settings, UpdateSettingsOptions, app_name=app_name, new_settings=new_settings)


@app.command("architecture-studio")
def architecture_studio(
    ctx: typer.Context,
    app_name: AppName,
    model_name: Annotated[str, typer.Option("--model-name", help="Architecture model name")],
) -> None:
    """Look up an Architecture Studio model for an application."""
    execute(
        ctx,
        commands.architecture_studio,
        ArchitectureStudioOptions,
        app_name=app_name,
        model_name=model_name,
    )


@app.command()
def serve(
    ctx: typer.Context,
    host: Annotated[Optional[str], typer.Option(help="Host to bind the server to")] = None,
    port: Annotated[Optional[int], typer.Option(help="Port to bind the server to")] = None,
    reload: Annotated[bool, typer.Option(help="Enable auto-reload on code changes")] = False,
) -> None:
    """Start the build-step HTTP service."""
    import uvicorn

    settings: Settings = ctx.obj or get_settings()
    host = host or settings.host
    port = port or settings.port
    console.print(f"[green]Starting build-step service on http://{host}:{port}[/green]")
    uvicorn.run(
        "aip_console_tools.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


def main() -> None:
    """Main entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(int(ExitCode.JOB_ABORTED))
