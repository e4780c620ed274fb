from __future__ import annotations

import asyncio
import queue
import time
from datetime import datetime
from typing import Optional

import click
from setproctitle import setproctitle

from handlab.types import CommandError, ExperimentConfig, ExperimentState, HandlabError
from handlab.util import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_DISPLAY_PORT,
    DEFAULT_HOST_ADDR,
    DEFAULT_LOGLEVEL,
    DEFAULT_TCP_PORT,
    DEFAULT_UDP_PORT,
    format_error_response,
    get_log_filename,
    shutdown_log,
    start_log,
)

from .console import ConsoleDisplay, ConsoleOperator, format_notification


def print_tree(cmd, prefix="", parent_ctx=None):
    """Print command tree starting from given command."""
    ctx = click.Context(cmd, info_name=cmd.name, parent=parent_ctx)

    # Only print root name if no parent
    if not parent_ctx:
        click.echo(cmd.name)

    for sub in sorted(cmd.list_commands(ctx)):
        sub_cmd = cmd.get_command(ctx, sub)
        click.echo(f"{prefix}└── {sub}")
        if isinstance(sub_cmd, click.Group):
            print_tree(sub_cmd, prefix + "    ", ctx)


def tree_option(f):
    """Add --tree option to command."""

    def callback(ctx, param, value):
        if not value or ctx.resilient_parsing:
            return
        print_tree(ctx.command)
        ctx.exit()

    return click.option(
        "--tree",
        is_flag=True,
        help="Show command tree from this point",
        expose_value=False,
        is_eager=True,
        callback=callback,
    )(f)


@click.group()
@tree_option
def cli():
    """handlab - controller for planar reaching experiments.

    Drives a robotic handle peripheral through blocks of reaching trials:

    - Receives handle telemetry over UDP and logs it per block

    - Sends trial targets to the peripheral over TCP

    - Prompts the operator and reports progress to displays
    """
    pass


async def run_controller(
    config: ExperimentConfig,
    subject_id: Optional[str] = None,
    auto_confirm: bool = False,
    publish: bool = False,
    interactive: bool = True,
    show_cursor: bool = False,
) -> ExperimentState:
    """Run one experiment with the console operator and display."""
    from handlab.experiment import OperatorInputs, build_orchestrator, run_experiment
    from handlab.net import RenderPublisher

    operator = OperatorInputs(subject_id, auto_confirm=auto_confirm)
    orchestrator = build_orchestrator(config, operator)
    handlers = [ConsoleDisplay(show_cursor=show_cursor)]
    publisher = None
    if publish:
        publisher = RenderPublisher(config.display_host, config.display_port)
        publisher.open()
        handlers.append(publisher)
    if interactive:
        ConsoleOperator(operator, orchestrator).start()
    try:
        return await run_experiment(orchestrator, handlers)
    finally:
        if publisher is not None:
            publisher.close()


@cli.command()
@click.option(
    "--config-name",
    "-n",
    default="default",
    help='Experiment configuration to use (e.g. "default", "mock")',
)
@click.option("--subject", "-s", default=None, help="Subject id (default: ask)")
@click.option(
    "--auto/--no-auto",
    "-a/",
    default=False,
    help="Start blocks and end rests without confirmation (default: disabled)",
)
@click.option(
    "--log-dir",
    "-ld",
    default=None,
    help="Directory for block logs (default: from configuration)",
)
@click.option(
    "--publish/--no-publish",
    "-p/",
    default=False,
    help="Publish notifications to displays over ZeroMQ (default: disabled)",
)
@click.option(
    "--show-cursor/--no-show-cursor",
    default=False,
    help="Print cursor positions (default: disabled)",
)
@click.option(
    "--log-to-file/--no-log-to-file",
    "-ltf/",
    default=True,
    help="Enable/disable logging to file (default: enabled)",
)
@click.option(
    "--log-to-stdout/--no-log-to-stdout",
    "-lts/",
    default=False,
    help="Enable/disable console logging (default: disabled)",
)
@click.option(
    "--log-path",
    "-lp",
    default="",
    help="Custom path for log file (default: ~/.handlab/controller.log)",
)
@click.option(
    "--clear-prev-log/--no-clear-prev-log",
    "-c/",
    default=True,
    help="Clear previous log file on startup (default: enabled)",
)
@click.option(
    "--log-level",
    "-ll",
    default=DEFAULT_LOGLEVEL,
    help="Logging level (DEBUG, INFO, WARNING, ERROR) (default: INFO)",
)
@click.pass_context
def run(ctx, **kwargs):
    """Run an experiment.

    Loads the configuration, then runs blocks of trials until all are done or
    the operator stops. Operator input comes from the terminal:

    - the subject id when asked for it

    - Enter to start a block or end a rest

    - q (or stop) for an emergency stop

    Exits with status 1 if the experiment was stopped.
    """
    from handlab.config import get_experiment_config

    try:
        config = get_experiment_config(kwargs["config_name"])
    except ValueError as err:
        raise click.ClickException(str(err))
    if kwargs["log_dir"]:
        config.log_dir = kwargs["log_dir"]

    timestamp = datetime.now().strftime("%Y-%m-%d_%H:%M:%S")
    setproctitle(f"handlab-controller_{timestamp}")

    start_log(
        log_to_file=kwargs["log_to_file"],
        log_to_stdout=kwargs["log_to_stdout"],
        log_path=kwargs["log_path"],
        clear_prev=kwargs["clear_prev_log"],
        log_level=kwargs["log_level"],
    )
    log_file = get_log_filename()
    if log_file:
        click.echo(f"Controller log: {log_file}")
    try:
        final_state = asyncio.run(
            run_controller(
                config,
                subject_id=kwargs["subject"],
                auto_confirm=kwargs["auto"],
                publish=kwargs["publish"],
                interactive=not (kwargs["subject"] and kwargs["auto"]),
                show_cursor=kwargs["show_cursor"],
            )
        )
    except ValueError as err:
        raise click.ClickException(str(err))
    except KeyboardInterrupt:
        final_state = ExperimentState.STOPPED
    finally:
        shutdown_log()

    click.echo(f"Experiment ended: {final_state}")
    if final_state is ExperimentState.STOPPED:
        ctx.exit(1)


@cli.command()
@click.argument("command")
@click.option("--host", "-h", default=DEFAULT_HOST_ADDR, help="Peripheral address")
@click.option("--port", "-p", default=DEFAULT_TCP_PORT, type=int, help="TCP port")
@click.option(
    "--timeout",
    "-t",
    default=DEFAULT_CONNECT_TIMEOUT,
    type=float,
    help="Connect timeout in seconds",
)
@click.pass_context
def send(ctx, command: str, host: str, port: int, timeout: float):
    """Send one raw command to the peripheral.

    COMMAND: e.g. "START_TRIAL;-3;-3;2;0"
    """
    from handlab.net import CommandChannel, SendResult

    channel = CommandChannel(host, port, timeout)
    try:
        sent = asyncio.run(channel.send(command))
    except CommandError as err:
        click.echo(f"Error: {err}", err=True)
        ctx.exit(1)
    click.echo(
        f"Sent to {host}:{port}" if sent is SendResult.SENT else "Nothing to send"
    )


@cli.command()
@click.option("--host", "-h", default="", help='Local interface (default: "" = all)')
@click.option("--port", "-p", default=DEFAULT_UDP_PORT, type=int, help="UDP port")
@click.option("--count", "-n", default=0, type=int, help="Stop after N records")
@click.option(
    "--duration", "-d", default=0.0, type=float, help="Stop after N seconds"
)
@click.pass_context
def listen(ctx, host: str, port: int, count: int, duration: float):
    """Print telemetry records as they arrive.

    Runs until --count records or --duration seconds, or Ctrl-C.
    """
    from handlab.net import TelemetryReceiver

    records: queue.SimpleQueue = queue.SimpleQueue()
    receiver = TelemetryReceiver(port, host)
    receiver.subscribe(records)
    try:
        receiver.start()
    except HandlabError as err:
        click.echo(f"Error: {err}", err=True)
        ctx.exit(1)
    click.echo(f"Listening on UDP port {receiver.port}")

    n_received = 0
    t_end = time.monotonic() + duration if duration > 0 else None
    try:
        while not count or n_received < count:
            if t_end is not None and time.monotonic() >= t_end:
                break
            try:
                record = records.get(timeout=0.1)
            except queue.Empty:
                continue
            n_received += 1
            click.echo(
                f"{record.time_step:10.4f}  pos ({record.handle_pos_x:+.3f}, "
                f"{record.handle_pos_y:+.3f})  finished {record.trial_finished}"
            )
    except KeyboardInterrupt:
        pass
    finally:
        receiver.stop()
    click.echo(f"{n_received} records, {receiver.statistics['dropped']} dropped")


@cli.command()
@click.option("--host", "-h", default=DEFAULT_HOST_ADDR, help="Controller address")
@click.option(
    "--port", "-p", default=DEFAULT_DISPLAY_PORT, type=int, help="Notification port"
)
@click.option("--count", "-n", default=0, type=int, help="Stop after N notifications")
@click.option(
    "--show-cursor/--no-show-cursor", default=False, help="Print cursor positions"
)
def watch(host: str, port: int, count: int, show_cursor: bool):
    """Follow a running controller's notifications (see `run --publish`)."""
    from handlab.net import start_bg_render_listener

    async def _watch():
        task, notifs = start_bg_render_listener(host, port)
        n_seen = 0
        try:
            while not count or n_seen < count:
                notif = await notifs.get()
                n_seen += 1
                line = format_notification(notif, show_cursor)
                if line is not None:
                    click.echo(line)
        finally:
            task.cancel()

    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        pass


@cli.group()
@tree_option
def config():
    """Manage experiment configurations."""
    pass


@config.command(name="list")
def list_configs():
    """List available experiment configurations."""
    from handlab.config import list_available_configs

    configs = list_available_configs()

    click.echo("\nAvailable experiment configurations:")
    click.echo("-----------------------------------")

    if not configs:
        click.echo("No experiment configurations found")
        click.echo("")
        return

    package_configs = [name for name, src in configs.items() if src == "package"]
    user_configs = [name for name, src in configs.items() if src == "user"]

    if package_configs:
        click.echo("\nPackage defaults:")
        for name in sorted(package_configs):
            click.echo(f"  - {name}")

    if user_configs:
        click.echo("\nUser configurations:")
        for name in sorted(user_configs):
            click.echo(f"  - {name}")
    click.echo("")


@config.command()
@click.argument("name")
@click.pass_context
def show(ctx, name: str):
    """Show an experiment configuration.

    NAME: Name of the configuration
    """
    from handlab.config import get_experiment_config

    try:
        exp_config = get_experiment_config(name)
    except ValueError:
        click.echo(f"Error: {format_error_response()}", err=True)
        ctx.exit(1)
    for key, value in exp_config.to_dict().items():
        click.echo(f"{key} = {value}")


@config.command()
def create():
    """Create the user configuration file with a 'Default' section."""
    from handlab.config import create_default_config_file

    path = create_default_config_file()
    click.echo(f"User configuration file: {path}")


@config.command()
@click.argument("source")
@click.argument("destination")
@click.pass_context
def copy(ctx, source: str, destination: str):
    """Copy an experiment configuration into the user file.

    SOURCE: Name of configuration to copy from
    DESTINATION: Name for new configuration
    """
    from handlab.config import copy_experiment_config

    try:
        copy_experiment_config(source, destination)
        click.echo(f"Copied experiment configuration '{source}' to '{destination}'")
    except ValueError:
        click.echo(f"Error: {format_error_response()}", err=True)
        ctx.exit(1)
