"""Errors raised by aws-ssm-connect.

Library code raises these; :mod:`aws_ssm_connect.main` is the only place
that turns them into an ``Error: ...`` line and a process exit code.
"""

from typing import Optional


class SSMConnectError(Exception):
    """Base error. ``exit_code`` becomes the process exit status."""

    exit_code: int = 1

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(SSMConnectError):
    """Missing or incomplete local AWS profile configuration."""


class AWSCallError(SSMConnectError):
    """An AWS API call failed."""


class AuthTimeoutError(AWSCallError):
    """The device authorization was not approved in time."""


class SelectionError(SSMConnectError):
    """Invalid answer to an interactive menu that has no fallback."""


class InstanceNotFoundError(SSMConnectError):
    """No running instance carries the requested Name tag."""


class SessionLaunchError(SSMConnectError):
    """The session client could not be started or exited non-zero."""
