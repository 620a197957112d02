import subprocess
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn

from aws_ssm_connect.exceptions import AWSCallError, AuthTimeoutError
from aws_ssm_connect.utils.config import (
    DEVICE_GRANT_TYPE,
    SSO_CLIENT_NAME,
    SSO_CLIENT_TYPE,
    SSO_SCOPES,
    TOKEN_POLL_ATTEMPTS,
    TOKEN_POLL_INTERVAL,
)
from aws_ssm_connect.utils.logger import get_logger
from aws_ssm_connect.utils.prompt import choose

logger = get_logger(__name__)
console = Console()

# create_token errors that can never turn into a token; anything else is a miss
TERMINAL_ERROR_CODES = (
    "ExpiredTokenException",
    "AccessDeniedException",
    "InvalidGrantException",
    "InvalidClientException",
    "UnauthorizedClientException",
)


@dataclass(frozen=True)
class DeviceAuthSession:
    client_id: str
    client_secret: str
    device_code: str
    verification_url: str


@dataclass(frozen=True)
class TemporaryCredentials:
    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: datetime


def _error_code(error: Exception) -> str:
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "")
    return ""


def open_browser(url: str) -> bool:
    """
    Opens ``url`` with the platform's default handler.
    Best effort: failures are logged and reported as False.
    """
    if sys.platform == "darwin":
        cmd = ["open", url]
    elif sys.platform.startswith("win"):
        cmd = ["cmd", "/c", "start", "", url]
    else:
        cmd = ["xdg-open", url]

    try:
        subprocess.Popen(
            cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
        )
    except OSError as e:
        logger.warning(f"Failed to open browser: {e}")
        return False
    return True


class SSOLogin:
    """
    Drives the IAM Identity Center device authorization flow:
    register client, start device auth, poll for a token, pick
    account and role, mint role credentials.
    """

    def __init__(self, region: str, session: Optional[boto3.Session] = None):
        self.region = region
        # Device auth and the SSO portal API are unsigned; no credentials needed
        session = session or boto3.Session(region_name=region)
        self.oidc_client = session.client("sso-oidc", region_name=region)
        self.sso_client = session.client("sso", region_name=region)

    # --- Device authorization ---
    def start_device_authorization(self, start_url: str) -> DeviceAuthSession:
        try:
            registration = self.oidc_client.register_client(
                clientName=SSO_CLIENT_NAME,
                clientType=SSO_CLIENT_TYPE,
                scopes=SSO_SCOPES,
            )
        except (ClientError, BotoCoreError) as e:
            raise AWSCallError(f"failed to register client: {e}")

        try:
            device = self.oidc_client.start_device_authorization(
                clientId=registration["clientId"],
                clientSecret=registration["clientSecret"],
                startUrl=start_url,
            )
        except (ClientError, BotoCoreError) as e:
            raise AWSCallError(f"failed to start device authorization: {e}")

        return DeviceAuthSession(
            client_id=registration["clientId"],
            client_secret=registration["clientSecret"],
            device_code=device["deviceCode"],
            verification_url=device.get("verificationUriComplete")
            or device["verificationUri"],
        )

    def poll_token(
        self,
        device: DeviceAuthSession,
        attempts: int = TOKEN_POLL_ATTEMPTS,
        interval: float = TOKEN_POLL_INTERVAL,
    ) -> str:
        """
        Exchanges the device code for an access token.
        Tries ``attempts`` times, sleeping ``interval`` seconds after every miss.
        """
        progress = Progress(
            TextColumn("[bold blue]Waiting for authentication"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        )
        with progress:
            task = progress.add_task("poll", total=attempts)
            for _ in range(attempts):
                try:
                    response = self.oidc_client.create_token(
                        clientId=device.client_id,
                        clientSecret=device.client_secret,
                        deviceCode=device.device_code,
                        grantType=DEVICE_GRANT_TYPE,
                    )
                    progress.update(task, completed=attempts)
                    return response["accessToken"]
                except ClientError as e:
                    if _error_code(e) in TERMINAL_ERROR_CODES:
                        raise AWSCallError(f"failed to create token: {e}")
                    logger.debug(f"Token not ready: {_error_code(e)}")
                except BotoCoreError as e:
                    logger.debug(f"Token request failed, retrying: {e}")

                time.sleep(interval)
                progress.advance(task)

        raise AuthTimeoutError("authentication timed out")

    def authenticate(self, start_url: str) -> str:
        """Runs the whole device flow and returns an access token."""
        device = self.start_device_authorization(start_url)

        console.print("\nOpening browser for authentication...")
        console.print(
            "If the browser doesn't open automatically, please visit: "
            f"[cyan]{escape(device.verification_url)}[/cyan]"
        )
        open_browser(device.verification_url)

        logger.info("Waiting for authentication...")
        return self.poll_token(device)

    # --- Account / role selection ---
    def _paginate(self, operation: str, key: str, **kwargs) -> List[Dict[str, Any]]:
        paginator = self.sso_client.get_paginator(operation)
        results = []
        for page in paginator.paginate(**kwargs):
            results.extend(page.get(key, []))
        return results

    def select_account(self, access_token: str) -> Dict[str, Any]:
        try:
            accounts = self._paginate(
                "list_accounts", "accountList", accessToken=access_token
            )
        except (ClientError, BotoCoreError) as e:
            raise AWSCallError(f"failed to list accounts: {e}")

        if not accounts:
            raise AWSCallError("no accounts found")
        if len(accounts) == 1:
            return accounts[0]

        return choose(
            accounts,
            title="Available accounts",
            prompt="Select account number",
            label=lambda a: f"{a.get('accountName', '')} ({a['accountId']})",
            noun="account",
        )

    def select_role(self, access_token: str, account: Dict[str, Any]) -> Dict[str, Any]:
        try:
            roles = self._paginate(
                "list_account_roles",
                "roleList",
                accessToken=access_token,
                accountId=account["accountId"],
            )
        except (ClientError, BotoCoreError) as e:
            raise AWSCallError(f"failed to list roles: {e}")

        if not roles:
            name = account.get("accountName") or account["accountId"]
            raise AWSCallError(f"no roles found for account {name}")
        if len(roles) == 1:
            return roles[0]

        return choose(
            roles,
            title="Available roles",
            prompt="Select role number",
            label=lambda r: r["roleName"],
            noun="role",
        )

    def select_account_and_role(self, access_token: str) -> Tuple[str, str]:
        account = self.select_account(access_token)
        role = self.select_role(access_token, account)
        return account["accountId"], role["roleName"]

    # --- Credentials ---
    def get_role_credentials(
        self, access_token: str, account_id: str, role_name: str
    ) -> TemporaryCredentials:
        try:
            response = self.sso_client.get_role_credentials(
                accessToken=access_token, accountId=account_id, roleName=role_name
            )
        except (ClientError, BotoCoreError) as e:
            raise AWSCallError(f"failed to get role credentials: {e}")

        creds = response["roleCredentials"]
        # expiration is epoch milliseconds
        expiration = datetime.fromtimestamp(
            creds["expiration"] / 1000, tz=timezone.utc
        )
        return TemporaryCredentials(
            access_key_id=creds["accessKeyId"],
            secret_access_key=creds["secretAccessKey"],
            session_token=creds["sessionToken"],
            expiration=expiration,
        )
