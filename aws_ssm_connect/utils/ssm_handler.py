import os
import subprocess
from typing import Dict, List, Optional

from aws_ssm_connect.exceptions import SessionLaunchError
from aws_ssm_connect.utils.config import (
    DEFAULT_COMMAND,
    DEFAULT_DOCUMENT,
    DEFAULT_PROFILE,
)
from aws_ssm_connect.utils.logger import get_logger

logger = get_logger(__name__)


def build_session_command(
    instance_id: str,
    region: str,
    document: str = DEFAULT_DOCUMENT,
    profile: str = DEFAULT_PROFILE,
    command: str = DEFAULT_COMMAND,
    has_temporary_credentials: bool = False,
) -> List[str]:
    """Builds the `aws ssm start-session` command line."""
    cmd = ["aws", "ssm", "start-session", "--target", instance_id]

    # Minted SSO credentials reach the child through the environment,
    # where a --profile flag would override them
    if profile and profile != DEFAULT_PROFILE and not has_temporary_credentials:
        cmd += ["--profile", profile]

    cmd += ["--document-name", document, "--region", region]

    if command and command != DEFAULT_COMMAND:
        cmd += ["--parameters", f"command='{command}'"]

    return cmd


class SSMConnector:
    def __init__(self, bundle):
        self.bundle = bundle

    def _child_env(self) -> Optional[Dict[str, str]]:
        """Environment for the session client, or None to inherit ours."""
        creds = self.bundle.credentials
        if creds is None:
            return None
        env = dict(os.environ)
        env.pop("AWS_PROFILE", None)
        env.update(
            {
                "AWS_ACCESS_KEY_ID": creds.access_key_id,
                "AWS_SECRET_ACCESS_KEY": creds.secret_access_key,
                "AWS_SESSION_TOKEN": creds.session_token,
            }
        )
        return env

    def start_interactive_session(
        self,
        instance_id: str,
        document: str = DEFAULT_DOCUMENT,
        profile: str = DEFAULT_PROFILE,
        command: str = DEFAULT_COMMAND,
    ) -> int:
        """
        Runs the session client in the foreground. It inherits our
        stdin/stdout/stderr until it exits.
        """
        cmd = build_session_command(
            instance_id,
            self.bundle.region,
            document=document,
            profile=profile,
            command=command,
            has_temporary_credentials=self.bundle.credentials is not None,
        )
        logger.info(f"🚀 Connecting to {instance_id}...")

        try:
            returncode = subprocess.call(cmd, env=self._child_env())
        except OSError as e:
            raise SessionLaunchError(f"failed to start session client '{cmd[0]}': {e}")

        if returncode != 0:
            raise SessionLaunchError(
                f"session client exited with status {returncode}",
                # negative means killed by a signal
                exit_code=returncode if returncode > 0 else 1,
            )
        return returncode
