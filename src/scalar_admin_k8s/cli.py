"""Command-line interface for pausing Scalar products."""

import functools
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import click
from pydantic import TypeAdapter
from safir.asyncio import run_with_asyncio
from safir.click import display_help
from safir.sentry import initialize_sentry, report_exception
from safir.slack.webhook import SlackWebhookClient
from structlog.stdlib import get_logger

from . import __version__
from .config import Config
from .constants import CONFIG_FILE_ENV_VAR, ROOT_LOGGER
from .exceptions import PauseCycleError
from .factory import Factory
from .models.domain.product import Product
from .models.v1.result import PauseResult, ProductEntry

__all__ = ["main", "main_with_sentry"]


def _common(
    func: Callable[..., Awaitable[None]],
) -> Callable[..., None]:
    """Load configuration and report any exceptions for a command.

    The wrapped command receives the loaded configuration as ``config``.
    Failures are logged, sent to Slack if an alert hook is configured, and
    end the command with exit status 1.
    """

    @click.option(
        "--debug",
        is_flag=True,
        help="Enable debug logging",
    )
    @click.option(
        "--config-file",
        "-c",
        help="Application configuration file",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
    )
    @run_with_asyncio
    @functools.wraps(func)
    async def wrapper(
        *, config_file: Path | None, debug: bool, **kwargs: Any
    ) -> None:
        # Prefer config file from env var if not given on the command line
        if not config_file and (env_path := os.getenv(CONFIG_FILE_ENV_VAR)):
            config_file = Path(env_path)
        config = Config.from_file(config_file) if config_file else Config()
        if debug:
            config.debug = debug
        config.configure_logging()

        # Configure slack alerting and report any exceptions
        logger = get_logger(ROOT_LOGGER)
        if config.alert_hook:
            slack_client = SlackWebhookClient(
                config.alert_hook.get_secret_value(),
                "Scalar Admin for Kubernetes",
                logger=logger,
            )
        else:
            slack_client = None

        try:
            await func(config=config, **kwargs)
        except click.ClickException:
            raise
        except Exception as exc:
            secondary = []
            if isinstance(exc, PauseCycleError):
                secondary = [str(e) for e in exc.secondary_errors]
            logger.error(
                f"{func.__name__} failed",
                error=str(exc),
                error_type=type(exc).__name__,
                secondary_errors=secondary or None,
            )
            await report_exception(exc, slack_client)
            raise click.exceptions.Exit(1) from exc

    return wrapper


def _parse_zone(
    ctx: click.Context, param: click.Parameter, value: str | None
) -> str | None:
    if value is None:
        return None
    try:
        return ZoneInfo(value).key
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise click.BadParameter(f"Unknown time zone {value}") from e


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(message="%(version)s")
def main() -> None:
    """Scalar Admin for Kubernetes command-line interface.

    Pauses a Scalar product deployed with the Scalar Helm charts so that a
    transactionally-consistent backup of its databases can be taken.
    """


@main.command()
@click.argument("topic", default=None, required=False, nargs=1)
@click.argument("subtopic", default=None, required=False, nargs=1)
@click.pass_context
def help(ctx: click.Context, topic: str | None, subtopic: str | None) -> None:
    """Show help for any command."""
    display_help(main, ctx, topic, subtopic)


@main.command
@click.option(
    "--release-name",
    "-r",
    default="<release>",
    help="Helm release name used to show deployment names",
)
def products(release_name: str) -> None:
    """Show the Scalar products that can be paused."""
    entries = [ProductEntry.from_product(p, release_name) for p in Product]
    adapter = TypeAdapter(list[ProductEntry])
    click.echo(adapter.dump_json(entries, indent=2).decode())


@main.command
@click.option(
    "--namespace",
    "-n",
    default=None,
    help="Namespace of the Helm release [default: default]",
)
@click.option(
    "--release-name",
    "-r",
    default=None,
    help="Helm release name of the Scalar product to pause",
)
@click.option(
    "--pause-duration",
    "-d",
    type=click.IntRange(min=1),
    default=None,
    help="Pause duration in milliseconds [default: 5000]",
)
@click.option(
    "--max-pause-wait-time",
    "-w",
    type=click.IntRange(min=0),
    default=None,
    help="Maximum milliseconds to wait for outstanding requests to finish",
)
@click.option(
    "--time-zone",
    "-z",
    callback=_parse_zone,
    default=None,
    help="Time zone of the reported local times [default: Etc/UTC]",
)
@click.option(
    "--product",
    type=click.Choice([p.value for p in Product]),
    default=None,
    help="Scalar product the Helm release must run",
)
@click.option(
    "--admin-port",
    type=click.IntRange(min=1, max=65535),
    default=None,
    help="Admin port, instead of the one in the headless service",
)
@click.option(
    "--tls",
    is_flag=True,
    default=False,
    help="Use TLS for admin requests",
)
@click.option(
    "--ca-root-cert-path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="File holding the PEM root certificate for admin requests",
)
@click.option(
    "--ca-root-cert-pem",
    default=None,
    help=(
        "PEM root certificate for admin requests, with newlines written as"
        " \\n. Takes precedence over --ca-root-cert-path."
    ),
)
@click.option(
    "--override-authority",
    default=None,
    help="Host name to verify in the certificate of the pods",
)
@click.option(
    "--kubeconfig",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to kubeconfig file [default: in-cluster configuration]",
)
@click.option(
    "--kube-context",
    default=None,
    help="Context of the kubeconfig file to use",
)
@_common
async def pause(
    *,
    config: Config,
    namespace: str | None,
    release_name: str | None,
    pause_duration: int | None,
    max_pause_wait_time: int | None,
    time_zone: str | None,
    product: str | None,
    admin_port: int | None,
    tls: bool,
    ca_root_cert_path: Path | None,
    ca_root_cert_pem: str | None,
    override_authority: str | None,
    kubeconfig: Path | None,
    kube_context: str | None,
) -> None:
    """Pause a Scalar product and print the paused period as JSON."""
    if namespace is not None:
        config.namespace = namespace
    if release_name is not None:
        config.release_name = release_name
    if pause_duration is not None:
        config.pause_duration = pause_duration
    if max_pause_wait_time is not None:
        config.max_pause_wait_time = max_pause_wait_time
    if time_zone is not None:
        config.time_zone = time_zone
    if product is not None:
        config.product = Product(product)
    if admin_port is not None:
        config.admin_port = admin_port
    if tls:
        config.tls = tls
    if ca_root_cert_pem is not None:
        config.ca_root_cert = ca_root_cert_pem.replace("\\n", "\n")
    elif ca_root_cert_path is not None:
        config.ca_root_cert = ca_root_cert_path.read_text()
    if override_authority is not None:
        config.override_authority = override_authority
    if kubeconfig is not None:
        config.kubeconfig = kubeconfig
    if kube_context is not None:
        config.kube_context = kube_context
    if not config.release_name:
        raise click.UsageError("Missing option '--release-name' / '-r'.")

    async with Factory.create(config) as factory:
        pauser = factory.create_pauser()
        duration = await pauser.pause(
            config.pause_duration, config.max_pause_wait_time
        )

    result = PauseResult.from_duration(
        duration,
        namespace=config.namespace,
        release=config.release_name,
        zone=config.zone,
    )
    click.echo(result.model_dump_json(indent=2))


def main_with_sentry() -> None:
    """Call the main command group after initializing Sentry."""
    initialize_sentry(release=__version__)
    main()
