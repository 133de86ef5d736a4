"""CLI entrypoint for snaptel."""

import logging
from collections.abc import Callable
from pathlib import Path

import rich_click as click

from snaptel import __version__
from snaptel.config import Settings, load_rest_password
from snaptel.errors import SnaptelError, UsageError
from snaptel.metrics.controllers import (
    MetricCliController,
    MetricGetCommand,
    MetricListCommand,
)
from snaptel.plugins.controllers import (
    PluginCliController,
    PluginConfigCommand,
    PluginLoadCommand,
    PluginRefCommand,
)
from snaptel.tasks.builder import TaskOverrides
from snaptel.tasks.controllers import (
    TaskCliController,
    TaskCreateCommand,
    TaskIdCommand,
    TaskListCommand,
    TaskWatchCommand,
)
from snaptel.tasks.schedule import ScheduleOverrides

click.rich_click.USE_MARKDOWN = True


@click.group()
@click.version_option(version=__version__, prog_name="snaptel")
@click.option("--url", "-u", default=None, help="Daemon REST URL. Overrides SNAPTEL_URL.")
@click.option(
    "--api-version",
    "-a",
    default=None,
    help="REST API version. Overrides SNAPTEL_API_VERSION.",
)
@click.option(
    "--insecure",
    is_flag=True,
    default=False,
    help="Skip TLS certificate verification.",
)
@click.option(
    "--password",
    "-p",
    is_flag=True,
    default=False,
    help="Prompt for the REST API password.",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Daemon config file holding the REST API password (deprecated).",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Request timeout in seconds. Overrides SNAPTEL_TIMEOUT_SECONDS.",
)
@click.pass_context
def snaptel(
    ctx: click.Context,
    url: str | None,
    api_version: str | None,
    insecure: bool,
    password: bool,
    config_path: Path | None,
    timeout: float | None,
) -> None:
    """Command line client for the Snap telemetry daemon."""

    try:
        settings = Settings.from_env()
    except ValueError as error:
        raise click.UsageError(str(error)) from error
    if url is not None:
        settings.url = url.rstrip("/")
    if api_version is not None:
        settings.api_version = api_version
    if timeout is not None:
        settings.timeout_seconds = timeout
    if insecure:
        settings.insecure = True
    try:
        settings.validate()
    except ValueError as error:
        raise click.UsageError(str(error)) from error

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if password:
        settings.password = click.prompt("Password", hide_input=True)
    elif config_path is not None:
        settings.password = load_rest_password(config_path)
    ctx.obj = settings


@snaptel.group()
def plugin() -> None:
    """Load, unload and inspect plugins."""


@plugin.command("load")
@click.argument("paths", nargs=-1)
@click.option(
    "--plugin-asc",
    "-a",
    "signature",
    default=None,
    help="Signature file (.asc) uploaded with the plugin.",
)
@click.pass_context
def plugin_load(ctx: click.Context, paths: tuple[str, ...], signature: str | None) -> None:
    """Load a plugin binary into the daemon."""

    controller = PluginCliController(ctx.obj)
    _run(ctx, lambda: controller.load(PluginLoadCommand(paths=paths, signature=signature)))


@plugin.command("unload")
@click.argument("plugin_type", required=False)
@click.argument("name", required=False)
@click.argument("version", required=False)
@click.pass_context
def plugin_unload(
    ctx: click.Context,
    plugin_type: str | None,
    name: str | None,
    version: str | None,
) -> None:
    """Unload a plugin given as `<type> <name> <version>`."""

    controller = PluginCliController(ctx.obj)
    _run(
        ctx,
        lambda: controller.unload(
            PluginRefCommand(plugin_type=plugin_type, name=name, version=version),
        ),
    )


@plugin.command("list")
@click.pass_context
def plugin_list(ctx: click.Context) -> None:
    """List loaded plugins."""

    controller = PluginCliController(ctx.obj)
    _run(ctx, controller.list_plugins)


@plugin.group("config")
def plugin_config() -> None:
    """Plugin config commands."""


@plugin_config.command("get")
@click.argument("plugin_id", required=False)
@click.option("--plugin-type", "-t", default=None, help="Plugin type.")
@click.option("--plugin-name", "-n", default=None, help="Plugin name.")
@click.option("--plugin-version", "-v", type=int, default=None, help="Plugin version.")
@click.pass_context
def plugin_config_get(
    ctx: click.Context,
    plugin_id: str | None,
    plugin_type: str | None,
    plugin_name: str | None,
    plugin_version: int | None,
) -> None:
    """Show the config of a plugin given as `<type>:<name>:<version>` or by options."""

    controller = PluginCliController(ctx.obj)
    _run(
        ctx,
        lambda: controller.config(
            PluginConfigCommand(
                plugin_id=plugin_id,
                plugin_type=plugin_type,
                name=plugin_name,
                version=plugin_version,
            ),
        ),
    )


@snaptel.group()
def metric() -> None:
    """Browse the metric catalog."""


@metric.command("list")
@click.option("--metric-namespace", "-m", "namespace", default=None, help="Namespace prefix.")
@click.option("--metric-version", "-v", "version", type=int, default=None, help="Version.")
@click.option("--verbose", is_flag=True, default=False, help="Show units and descriptions.")
@click.pass_context
def metric_list(
    ctx: click.Context,
    namespace: str | None,
    version: int | None,
    verbose: bool,
) -> None:
    """List available metrics."""

    controller = MetricCliController(ctx.obj)
    _run(
        ctx,
        lambda: controller.list_metrics(
            MetricListCommand(namespace=namespace, version=version, verbose=verbose),
        ),
    )


@metric.command("get")
@click.option("--metric-namespace", "-m", "namespace", default=None, help="Metric namespace.")
@click.option("--metric-version", "-v", "version", type=int, default=None, help="Version.")
@click.pass_context
def metric_get(ctx: click.Context, namespace: str | None, version: int | None) -> None:
    """Show details and collection rules of a metric."""

    controller = MetricCliController(ctx.obj)
    _run(
        ctx,
        lambda: controller.get_metric(MetricGetCommand(namespace=namespace, version=version)),
    )


@snaptel.group()
def task() -> None:
    """Create, control and watch tasks."""


@task.command("create")
@click.option(
    "--task-manifest",
    "-t",
    type=click.Path(path_type=Path),
    default=None,
    help="Task manifest (.json, .yaml or .yml).",
)
@click.option(
    "--workflow-manifest",
    "-w",
    type=click.Path(path_type=Path),
    default=None,
    help="Workflow manifest; requires --interval.",
)
@click.option(
    "--interval",
    "-i",
    default=None,
    help="Duration such as `5s`, or a cron entry such as `0 */5 * * * *`.",
)
@click.option("--start-date", default=None, help="Window start date, e.g. 1-02-2006.")
@click.option("--start-time", default=None, help="Window start time, e.g. 3:04PM.")
@click.option("--stop-date", default=None, help="Window stop date, e.g. 1-02-2006.")
@click.option("--stop-time", default=None, help="Window stop time, e.g. 3:04PM.")
@click.option("--duration", "-d", default=None, help="Window length, e.g. 1h30m.")
@click.option("--count", default=None, help="Number of runs for a simple schedule.")
@click.option("--name", "-n", default=None, help="Task name.")
@click.option("--deadline", default=None, help="Per-run deadline, e.g. 5s.")
@click.option("--max-failures", default=None, help="Consecutive failures before disabling.")
@click.option("--no-start", is_flag=True, default=False, help="Do not start the task.")
@click.pass_context
def task_create(
    ctx: click.Context,
    task_manifest: Path | None,
    workflow_manifest: Path | None,
    interval: str | None,
    start_date: str | None,
    start_time: str | None,
    stop_date: str | None,
    stop_time: str | None,
    duration: str | None,
    count: str | None,
    name: str | None,
    deadline: str | None,
    max_failures: str | None,
    no_start: bool,
) -> None:
    """Create a task from a task manifest or a workflow manifest."""

    controller = TaskCliController(ctx.obj)
    command = TaskCreateCommand(
        task_manifest=task_manifest,
        workflow_manifest=workflow_manifest,
        overrides=TaskOverrides(
            name=name,
            deadline=deadline,
            max_failures=max_failures,
            auto_start=not no_start,
            schedule=ScheduleOverrides(
                start_date=start_date,
                start_time=start_time,
                stop_date=stop_date,
                stop_time=stop_time,
                duration=duration,
                interval=interval,
                count=count,
            ),
        ),
    )
    _run(ctx, lambda: controller.create(command))


@task.command("list")
@click.option("--verbose", is_flag=True, default=False, help="Do not truncate columns.")
@click.pass_context
def task_list(ctx: click.Context, verbose: bool) -> None:
    """List tasks."""

    controller = TaskCliController(ctx.obj)
    _run(ctx, lambda: controller.list_tasks(TaskListCommand(verbose=verbose)))


@task.command("start")
@click.argument("task_ids", nargs=-1)
@click.pass_context
def task_start(ctx: click.Context, task_ids: tuple[str, ...]) -> None:
    """Start a task."""

    controller = TaskCliController(ctx.obj)
    _run(ctx, lambda: controller.start(TaskIdCommand(task_ids=task_ids)))


@task.command("stop")
@click.argument("task_ids", nargs=-1)
@click.pass_context
def task_stop(ctx: click.Context, task_ids: tuple[str, ...]) -> None:
    """Stop a task."""

    controller = TaskCliController(ctx.obj)
    _run(ctx, lambda: controller.stop(TaskIdCommand(task_ids=task_ids)))


@task.command("enable")
@click.argument("task_ids", nargs=-1)
@click.pass_context
def task_enable(ctx: click.Context, task_ids: tuple[str, ...]) -> None:
    """Enable a disabled task."""

    controller = TaskCliController(ctx.obj)
    _run(ctx, lambda: controller.enable(TaskIdCommand(task_ids=task_ids)))


@task.command("remove")
@click.argument("task_ids", nargs=-1)
@click.pass_context
def task_remove(ctx: click.Context, task_ids: tuple[str, ...]) -> None:
    """Remove a task."""

    controller = TaskCliController(ctx.obj)
    _run(ctx, lambda: controller.remove(TaskIdCommand(task_ids=task_ids)))


@task.command("export")
@click.argument("task_ids", nargs=-1)
@click.pass_context
def task_export(ctx: click.Context, task_ids: tuple[str, ...]) -> None:
    """Print a task as JSON."""

    controller = TaskCliController(ctx.obj)
    _run(ctx, lambda: controller.export(TaskIdCommand(task_ids=task_ids)))


@task.command("watch")
@click.argument("task_ids", nargs=-1)
@click.option("--verbose", is_flag=True, default=False, help="Show metric tags.")
@click.pass_context
def task_watch(ctx: click.Context, task_ids: tuple[str, ...], verbose: bool) -> None:
    """Stream collected metrics of a running task until interrupted."""

    controller = TaskCliController(ctx.obj)
    _run(ctx, lambda: controller.watch(TaskWatchCommand(task_ids=task_ids, verbose=verbose)))


def _run(ctx: click.Context, action: Callable[[], list[str]]) -> None:
    try:
        lines = action()
    except UsageError as error:
        click.echo(f"Error: {error}", err=True)
        click.echo(ctx.get_help(), err=True)
        ctx.exit(1)
    except SnaptelError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    snaptel()
