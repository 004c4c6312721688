"""Main CLI entry point for solokube."""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import TYPE_CHECKING, Any

import click
from click.core import ParameterSource
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from solokube import __version__
from solokube.core.config import DEFAULT_CONFIG_PATH
from solokube.core.exceptions import SolokubeError
from solokube.interfaces.exceptions import InterfaceError, RuntimeUnavailableError

if TYPE_CHECKING:
    from solokube.core.config import SolokubeConfig
    from solokube.core.models import ClusterInfo
    from solokube.interfaces.node_runtime import NodeRuntime
    from solokube.kernel.cache import KernelCache
    from solokube.lifecycle.controller import ClusterController

console = Console()

RUNTIME_HINT = "Ensure container system service has been started with `container system start`."


class SolokubeContext:
    """Shared context for CLI commands with lazy initialization."""

    def __init__(self, config_path: str, config_required: bool = False, debug: bool = False):
        """Initialize context with config path.

        Args:
            config_path: Path to configuration file
            config_required: Fail if the configuration file does not exist
            debug: Debug mode (verbose logging, streamed in-node output)
        """
        self.config_path = config_path
        self.config_required = config_required
        self.debug = debug
        self._config: SolokubeConfig | None = None
        self._runtime: NodeRuntime | None = None
        self._kernel_cache: KernelCache | None = None
        self._controller: ClusterController | None = None

    @property
    def config(self) -> SolokubeConfig:
        """Get or load config lazily."""
        if self._config is None:
            from solokube.core.config import SolokubeConfig

            self._config = SolokubeConfig.from_file(
                self.config_path, required=self.config_required
            )
        return self._config

    @property
    def runtime(self) -> NodeRuntime:
        """Get or create the node runtime adapter lazily."""
        if self._runtime is None:
            from solokube.adapters.container_adapter import ContainerAdapter

            self._runtime = ContainerAdapter(binary=self.config.runtime.binary)
        return self._runtime

    @property
    def kernel_cache(self) -> KernelCache:
        """Get or create the kernel cache lazily."""
        if self._kernel_cache is None:
            from solokube.kernel.cache import KernelCache

            self._kernel_cache = KernelCache.from_config(self.config.kernel)
        return self._kernel_cache

    @property
    def controller(self) -> ClusterController:
        """Get or create the cluster controller lazily."""
        if self._controller is None:
            from solokube.lifecycle.controller import ClusterController

            self._controller = ClusterController(
                runtime=self.runtime,
                kernel_cache=self.kernel_cache,
                defaults=self.config.defaults,
            )
        return self._controller


def format_error(error: Exception) -> str:
    """Render an error for the terminal, adding a hint when the runtime is unreachable."""
    message = str(error)
    if isinstance(error, RuntimeUnavailableError) or "XPC connection error" in message:
        return f"{message}\n{RUNTIME_HINT}"
    return message


class SolokubeGroup(click.Group):
    """Command group that turns solokube failures into clean CLI errors."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except KeyboardInterrupt:
            raise click.exceptions.Exit(128 + signal.SIGINT) from None
        except (SolokubeError, InterfaceError) as e:
            if isinstance(ctx.obj, SolokubeContext) and ctx.obj.debug:
                from solokube.utils.logging import get_logger, log_error

                log_error(get_logger(__name__), e, operation=ctx.invoked_subcommand)
            raise click.ClickException(format_error(e)) from e


def _print_fields(rows: list[tuple[str, str]]) -> None:
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()
    for label, value in rows:
        table.add_row(Text(f"{label}:"), Text(value))
    console.print(table)


@click.group(cls=SolokubeGroup)
@click.version_option(version=__version__)
@click.option(
    "--config",
    type=click.Path(dir_okay=False),
    default=DEFAULT_CONFIG_PATH,
    help="Path to configuration file",
)
@click.option("--debug", is_flag=True, help="Enable debug logging and stream in-node output")
@click.pass_context
def cli(ctx: click.Context, config: str, debug: bool) -> None:
    """solokube - single-node Kubernetes clusters on Apple Containerization."""
    from solokube.utils.logging import setup_logging

    explicit = ctx.get_parameter_source("config") != ParameterSource.DEFAULT
    ctx.obj = SolokubeContext(config_path=config, config_required=explicit, debug=debug)

    log_config = ctx.obj.config.logging
    setup_logging(
        level="DEBUG" if debug else log_config.level,
        format=log_config.format,
        output=log_config.output,
    )


@cli.command()
@click.option("--name", help="Cluster name")
@click.option("--image", help="Container image for the node")
@click.option("--cpus", type=click.IntRange(min=1), help="Number of CPUs to allocate")
@click.option("--memory", help="Memory allocation (e.g. 8G, 16G)")
@click.option("--pod-cidr", help="Pod network CIDR for kubeadm")
@click.option("--api-port", type=click.IntRange(1, 65535), help="Kubernetes API server port")
@click.option("--kernel", "-k", type=click.Path(dir_okay=False), help="Path to kernel binary")
@click.option("--kubeconfig", type=click.Path(dir_okay=False), help="Write kubeconfig to this path")
@click.option("--replace", is_flag=True, help="Delete any existing cluster with the same name")
@click.pass_context
def create(
    ctx: click.Context,
    name: str | None,
    image: str | None,
    cpus: int | None,
    memory: str | None,
    pod_cidr: str | None,
    api_port: int | None,
    kernel: str | None,
    kubeconfig: str | None,
    replace: bool,
) -> None:
    """Create a Kubernetes cluster."""
    from solokube.core.models import ClusterSpec

    solokube_ctx: SolokubeContext = ctx.obj
    defaults = solokube_ctx.config.defaults

    spec = ClusterSpec(
        name=name or defaults.name,
        image=image or defaults.image,
        cpus=cpus or defaults.cpus,
        memory=memory or defaults.memory,
        pod_cidr=pod_cidr or defaults.pod_cidr,
        api_port=api_port or defaults.api_port,
        kernel_path=kernel,
        kubeconfig_path=kubeconfig,
    )

    async def _create() -> ClusterInfo:
        controller = solokube_ctx.controller
        if solokube_ctx.debug:
            return await controller.create(spec, replace=replace, verbose=True)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            task_id = progress.add_task("Preparing cluster...", total=None)

            def _report(label: str) -> None:
                progress.console.print(label, highlight=False)
                progress.update(task_id, description=label)

            return await controller.create(spec, replace=replace, progress=_report)

    info = asyncio.run(_create())

    if not solokube_ctx.debug:
        console.print("Cluster ready.")
    console.print("\n[bold green]Cluster created.[/bold green]\n")

    rows = [("Name", info.name), ("Node", info.node_name)]
    if info.node_ip:
        rows.append(("Node IP", info.node_ip))
        rows.append(("HTTP/HTTPS", f"http://{info.node_ip} / https://{info.node_ip}"))
    rows.append(("API server", info.api_server))
    rows.append(("Kubeconfig", str(info.kubeconfig_path)))
    _print_fields(rows)


@cli.command()
@click.option("--name", help="Cluster name")
@click.option("--force", is_flag=True, help="Force delete the cluster")
@click.pass_context
def delete(ctx: click.Context, name: str | None, force: bool) -> None:
    """Delete a Kubernetes cluster."""
    from solokube.core.models import node_name_for

    solokube_ctx: SolokubeContext = ctx.obj
    cluster_name = name or solokube_ctx.config.defaults.name

    deleted = asyncio.run(solokube_ctx.controller.delete(cluster_name, force=force))
    if deleted:
        click.echo(node_name_for(cluster_name))


@cli.command()
@click.option("--name", help="Cluster name")
@click.pass_context
def start(ctx: click.Context, name: str | None) -> None:
    """Start a Kubernetes cluster."""
    from solokube.core.models import node_name_for

    solokube_ctx: SolokubeContext = ctx.obj
    cluster_name = name or solokube_ctx.config.defaults.name

    asyncio.run(solokube_ctx.controller.start(cluster_name))
    click.echo(node_name_for(cluster_name))


@cli.command()
@click.option("--name", help="Cluster name")
@click.pass_context
def stop(ctx: click.Context, name: str | None) -> None:
    """Stop a Kubernetes cluster."""
    from solokube.core.models import node_name_for

    solokube_ctx: SolokubeContext = ctx.obj
    cluster_name = name or solokube_ctx.config.defaults.name

    asyncio.run(solokube_ctx.controller.stop(cluster_name))
    click.echo(node_name_for(cluster_name))


@cli.command()
@click.option("--name", help="Cluster name")
@click.pass_context
def status(ctx: click.Context, name: str | None) -> None:
    """Show cluster status."""
    solokube_ctx: SolokubeContext = ctx.obj
    cluster_name = name or solokube_ctx.config.defaults.name

    report = asyncio.run(solokube_ctx.controller.status(cluster_name))

    rows = [("Name", report.name), ("Node", report.node_name), ("Status", report.status)]
    if report.node_ip:
        rows.append(("Node IP", report.node_ip))
    if report.api_server:
        rows.append(("API server", report.api_server))
    rows.append(("Kubeconfig", str(report.kubeconfig_path)))
    _print_fields(rows)


@cli.command()
@click.option("--name", help="Cluster name")
@click.option("--kubeconfig", type=click.Path(dir_okay=False), help="Write kubeconfig to this path")
@click.pass_context
def kubeconfig(ctx: click.Context, name: str | None, kubeconfig: str | None) -> None:
    """Print or write kubeconfig."""
    solokube_ctx: SolokubeContext = ctx.obj
    cluster_name = name or solokube_ctx.config.defaults.name

    output = asyncio.run(solokube_ctx.controller.kubeconfig(cluster_name, destination=kubeconfig))
    click.echo(output)


def _exit_on_signal(signum: int, _frame: Any) -> None:
    sys.exit(128 + signum)


def main() -> None:
    """Console script entry point."""
    signal.signal(signal.SIGTERM, _exit_on_signal)
    cli()


if __name__ == "__main__":
    main()
