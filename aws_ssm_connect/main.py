#!/usr/bin/env python3
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from aws_ssm_connect.auth.session import ClientBundle, bootstrap_session
from aws_ssm_connect.exceptions import SSMConnectError
from aws_ssm_connect.utils.config import (
    DEFAULT_COMMAND,
    DEFAULT_DOCUMENT,
    DEFAULT_PROFILE,
    VERSION,
    RunConfig,
    resolve_profile,
)
from aws_ssm_connect.utils.ec2 import find_running_instance
from aws_ssm_connect.utils.logger import LogFormat, get_logger, set_log_format
from aws_ssm_connect.utils.ssm_handler import SSMConnector

logger = get_logger(__name__)
err_console = Console(stderr=True)

app = typer.Typer(
    help="Connect to EC2 instances via AWS SSM with automatic SSO authentication",
    add_completion=False,
)


def version_callback(value: bool):
    if value:
        typer.echo(f"aws-ssm-connect version {VERSION}")
        raise typer.Exit()


def run(config: RunConfig, clients: Optional[ClientBundle] = None) -> int:
    """
    Locates the instance and hands the terminal to the session client.
    Bootstraps a ClientBundle when none is passed in.
    """
    if clients is None:
        clients = bootstrap_session(config.profile)

    instance = find_running_instance(clients.ec2, config.tag_name)

    connector = SSMConnector(clients)
    return connector.start_interactive_session(
        instance["InstanceId"],
        document=config.document,
        profile=config.profile,
        command=config.command,
    )


@app.command()
def connect(
    tag_name: str = typer.Argument(..., help="Value of the instance's Name tag"),
    profile: Optional[str] = typer.Option(
        None,
        "--profile",
        "-p",
        help=f"AWS profile name to use (default: {DEFAULT_PROFILE}, prompts when omitted)",
        show_default=False,
    ),
    command: str = typer.Option(
        DEFAULT_COMMAND, "--command", "-c", help="Command to execute on the instance"
    ),
    document: str = typer.Option(
        DEFAULT_DOCUMENT, "--document", "-d", help="SSM document name to use"
    ),
    log_format: LogFormat = typer.Option(
        LogFormat.text, "--log-format", help="Log output format"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version information",
        callback=version_callback,
        is_eager=True,
    ),
):
    """
    Find the running instance tagged Name=TAG_NAME and open an SSM session to it.
    """
    set_log_format(log_format.value)

    try:
        config = RunConfig(
            profile=resolve_profile(profile),
            tag_name=tag_name,
            command=command,
            document=document,
        )
        run(config)
    except SSMConnectError as e:
        err_console.print(
            f"[bold red]Error:[/bold red] {escape(str(e))}", soft_wrap=True
        )
        raise typer.Exit(code=e.exit_code)


def main():
    app()


if __name__ == "__main__":
    main()
