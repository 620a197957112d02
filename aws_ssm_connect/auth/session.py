from dataclasses import dataclass
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from aws_ssm_connect.auth.sso import SSOLogin, TemporaryCredentials
from aws_ssm_connect.utils.config import get_sso_settings
from aws_ssm_connect.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ClientBundle:
    """
    AWS clients sharing one credential/region configuration.
    Never mutated: a credential refresh produces a new bundle.
    """

    session: boto3.Session
    region: str
    sts: Any
    ec2: Any
    ssm: Any
    credentials: Optional[TemporaryCredentials] = None

    @classmethod
    def from_session(
        cls,
        session: boto3.Session,
        credentials: Optional[TemporaryCredentials] = None,
    ) -> "ClientBundle":
        return cls(
            session=session,
            region=session.region_name,
            sts=session.client("sts"),
            ec2=session.client("ec2"),
            ssm=session.client("ssm"),
            credentials=credentials,
        )

    @classmethod
    def from_profile(cls, profile: str) -> "ClientBundle":
        return cls.from_session(boto3.Session(profile_name=profile))

    @classmethod
    def from_credentials(
        cls, credentials: TemporaryCredentials, region: str
    ) -> "ClientBundle":
        session = boto3.Session(
            aws_access_key_id=credentials.access_key_id,
            aws_secret_access_key=credentials.secret_access_key,
            aws_session_token=credentials.session_token,
            region_name=region,
        )
        return cls.from_session(session, credentials=credentials)


def probe_profile(profile: str) -> Optional[ClientBundle]:
    """
    Builds clients for ``profile`` and checks them with GetCallerIdentity.
    Returns None when the credentials are missing, expired or otherwise unusable.
    """
    try:
        bundle = ClientBundle.from_profile(profile)
        identity = bundle.sts.get_caller_identity()
    except (ClientError, BotoCoreError) as e:
        logger.info(f"Credentials for profile '{profile}' are not valid: {e}")
        return None

    logger.info(f"Authenticated as {identity.get('Arn', 'unknown')}")
    return bundle


def sso_login(profile: str) -> ClientBundle:
    """Runs the SSO device flow for ``profile`` and returns a fresh bundle."""
    settings = get_sso_settings(profile)
    logger.info(f"Starting SSO login for profile '{profile}' ({settings.start_url})")

    login = SSOLogin(settings.region)
    access_token = login.authenticate(settings.start_url)
    account_id, role_name = login.select_account_and_role(access_token)
    credentials = login.get_role_credentials(access_token, account_id, role_name)

    logger.info(
        f"Using role {role_name} in account {account_id} "
        f"(expires {credentials.expiration:%Y-%m-%d %H:%M:%S %Z})"
    )
    return ClientBundle.from_credentials(credentials, settings.region)


def bootstrap_session(profile: str) -> ClientBundle:
    """Returns a usable ClientBundle, logging in through SSO only if needed."""
    bundle = probe_profile(profile)
    if bundle is not None:
        return bundle
    return sso_login(profile)
