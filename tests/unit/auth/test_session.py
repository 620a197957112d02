import pytest
from datetime import datetime, timezone
from botocore.exceptions import ClientError, NoCredentialsError
from unittest.mock import MagicMock, patch

from aws_ssm_connect.auth.session import ClientBundle, bootstrap_session, probe_profile
from aws_ssm_connect.auth.sso import TemporaryCredentials
from aws_ssm_connect.exceptions import ConfigurationError
from aws_ssm_connect.utils.config import SSOSettings

pytestmark = pytest.mark.unit

PATCH_PATH = "aws_ssm_connect.auth.session"

TEMP_CREDS = TemporaryCredentials(
    access_key_id="ASIA_TEST",
    secret_access_key="SECRET_TEST",
    session_token="TOKEN_TEST",
    expiration=datetime(2030, 1, 1, tzinfo=timezone.utc),
)


@pytest.fixture
def mock_boto_session():
    with patch(f"{PATCH_PATH}.boto3.Session") as mock_session_cls:
        mock_session = mock_session_cls.return_value
        mock_session.region_name = "us-east-1"
        yield mock_session_cls


def test_bundle_from_credentials_uses_static_keys(mock_boto_session):
    bundle = ClientBundle.from_credentials(TEMP_CREDS, "eu-west-1")

    mock_boto_session.assert_called_once_with(
        aws_access_key_id="ASIA_TEST",
        aws_secret_access_key="SECRET_TEST",
        aws_session_token="TOKEN_TEST",
        region_name="eu-west-1",
    )
    assert bundle.credentials is TEMP_CREDS
    requested = [c.args[0] for c in mock_boto_session.return_value.client.call_args_list]
    assert requested == ["sts", "ec2", "ssm"]


def test_probe_profile_valid(mock_boto_session):
    sts = MagicMock()
    sts.get_caller_identity.return_value = {"Arn": "arn:aws:iam::1:user/me"}
    mock_boto_session.return_value.client.return_value = sts

    bundle = probe_profile("work")

    mock_boto_session.assert_called_once_with(profile_name="work")
    assert bundle is not None
    assert bundle.region == "us-east-1"
    assert bundle.credentials is None


def test_probe_profile_invalid_credentials(mock_boto_session):
    sts = MagicMock()
    sts.get_caller_identity.side_effect = ClientError(
        {"Error": {"Code": "ExpiredToken", "Message": "expired"}}, "GetCallerIdentity"
    )
    mock_boto_session.return_value.client.return_value = sts

    assert probe_profile("work") is None


def test_probe_profile_no_credentials(mock_boto_session):
    mock_boto_session.return_value.client.return_value.get_caller_identity.side_effect = (
        NoCredentialsError()
    )

    assert probe_profile("work") is None


def test_bootstrap_valid_credentials_skip_sso():
    bundle = MagicMock()
    with (
        patch(f"{PATCH_PATH}.probe_profile", return_value=bundle),
        patch(f"{PATCH_PATH}.SSOLogin") as mock_login,
        patch(f"{PATCH_PATH}.get_sso_settings") as mock_settings,
    ):
        assert bootstrap_session("default") is bundle
        mock_login.assert_not_called()
        mock_settings.assert_not_called()


@pytest.mark.sso
def test_bootstrap_invalid_credentials_runs_sso():
    new_bundle = MagicMock()
    with (
        patch(f"{PATCH_PATH}.probe_profile", return_value=None),
        patch(
            f"{PATCH_PATH}.get_sso_settings",
            return_value=SSOSettings("https://corp.awsapps.com/start", "eu-west-1"),
        ),
        patch(f"{PATCH_PATH}.SSOLogin") as mock_login_cls,
        patch(
            f"{PATCH_PATH}.ClientBundle.from_credentials", return_value=new_bundle
        ) as mock_from_creds,
    ):
        login = mock_login_cls.return_value
        login.authenticate.return_value = "tok"
        login.select_account_and_role.return_value = ("111111111111", "Admin")
        login.get_role_credentials.return_value = TEMP_CREDS

        assert bootstrap_session("work") is new_bundle

        mock_login_cls.assert_called_once_with("eu-west-1")
        login.authenticate.assert_called_once_with("https://corp.awsapps.com/start")
        login.get_role_credentials.assert_called_once_with("tok", "111111111111", "Admin")
        mock_from_creds.assert_called_once_with(TEMP_CREDS, "eu-west-1")


@pytest.mark.sso
def test_bootstrap_missing_sso_config_is_fatal():
    with (
        patch(f"{PATCH_PATH}.probe_profile", return_value=None),
        patch(
            f"{PATCH_PATH}.get_sso_settings",
            side_effect=ConfigurationError("SSO configuration not found in profile work"),
        ),
        patch(f"{PATCH_PATH}.SSOLogin") as mock_login_cls,
    ):
        with pytest.raises(ConfigurationError, match="work"):
            bootstrap_session("work")
        mock_login_cls.assert_not_called()
