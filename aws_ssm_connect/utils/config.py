import configparser
import os
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import List, Optional

from aws_ssm_connect.exceptions import ConfigurationError
from aws_ssm_connect.utils.logger import get_logger
from aws_ssm_connect.utils.prompt import choose

logger = get_logger(__name__)

try:
    VERSION = version("aws-ssm-connect")
except PackageNotFoundError:
    # running from a source checkout
    VERSION = "dev"

DEFAULT_PROFILE = "default"
DEFAULT_COMMAND = "bash"
DEFAULT_DOCUMENT = "AWS-StartInteractiveCommand"

# SSO device authorization
SSO_CLIENT_NAME = "aws-ssm-connect"
SSO_CLIENT_TYPE = "public"
SSO_SCOPES = ["sso:account:access"]
DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
TOKEN_POLL_ATTEMPTS = 60
TOKEN_POLL_INTERVAL = 1.0


@dataclass(frozen=True)
class RunConfig:
    """Everything one run needs, taken from the command line."""

    profile: str
    tag_name: str
    command: str = DEFAULT_COMMAND
    document: str = DEFAULT_DOCUMENT


@dataclass(frozen=True)
class SSOSettings:
    start_url: str
    region: str


def config_file_path() -> Path:
    """Location of the AWS config store (honours AWS_CONFIG_FILE)."""
    return Path(
        os.path.expanduser(os.environ.get("AWS_CONFIG_FILE", "~/.aws/config"))
    )


def credentials_file_path() -> Path:
    """Location of the AWS credentials store (honours AWS_SHARED_CREDENTIALS_FILE)."""
    return Path(
        os.path.expanduser(
            os.environ.get("AWS_SHARED_CREDENTIALS_FILE", "~/.aws/credentials")
        )
    )


def _read_ini(path: Path) -> Optional[configparser.ConfigParser]:
    """Parses an INI file, returning None if it is missing or unreadable."""
    if not path.exists():
        return None
    # default_section must not swallow a literal [default] profile
    parser = configparser.ConfigParser(
        default_section="DEFAULT", interpolation=None, strict=False
    )
    try:
        parser.read(path)
    except (OSError, configparser.Error) as e:
        logger.warning(f"Could not read {path}: {e}")
        return None
    return parser


def _config_profile_name(section: str) -> Optional[str]:
    if section.startswith("profile "):
        return section[len("profile "):].strip()
    if section == DEFAULT_PROFILE:
        return DEFAULT_PROFILE
    # sso-session and other non-profile sections
    return None


def list_profiles() -> List[str]:
    """
    Collects profile names from the config and credentials stores.
    Config entries come first; duplicates from the credentials store are dropped.
    """
    profiles: List[str] = []

    config = _read_ini(config_file_path())
    if config is not None:
        for section in config.sections():
            name = _config_profile_name(section)
            if name and name not in profiles:
                profiles.append(name)

    credentials = _read_ini(credentials_file_path())
    if credentials is not None:
        for section in credentials.sections():
            if section and section not in profiles:
                profiles.append(section)

    return profiles


def resolve_profile(explicit: Optional[str] = None) -> str:
    """
    Returns the profile to use for this run.
    An explicit profile is used as-is; otherwise the user may be asked to pick one.
    """
    if explicit:
        return explicit

    profiles = list_profiles()

    if not profiles:
        logger.info(f"No AWS profiles found. Using '{DEFAULT_PROFILE}'.")
        return DEFAULT_PROFILE

    if len(profiles) == 1:
        logger.info(f"Using AWS profile: {profiles[0]}")
        return profiles[0]

    selected = choose(
        sorted(profiles),
        title="Available AWS profiles",
        prompt=f"Select profile number (or press Enter for '{DEFAULT_PROFILE}')",
        fallback=DEFAULT_PROFILE,
        noun="profile",
    )
    logger.info(f"Using AWS profile: {selected}")
    return selected


def get_sso_settings(profile: str) -> SSOSettings:
    """Reads sso_start_url / sso_region for a profile from the config store."""
    path = config_file_path()
    config = _read_ini(path)
    if config is None:
        raise ConfigurationError(
            f"failed to load AWS config file {path} for profile {profile}"
        )

    section_name = f"profile {profile}"
    if not config.has_section(section_name) and profile == DEFAULT_PROFILE:
        section_name = DEFAULT_PROFILE
    if not config.has_section(section_name):
        raise ConfigurationError(f"profile {profile} not found in AWS config")

    section = config[section_name]
    start_url = section.get("sso_start_url", "").strip()
    region = section.get("sso_region", "").strip()

    # Newer layout: settings live in a shared [sso-session <name>] block
    sso_session = section.get("sso_session", "").strip()
    if sso_session and config.has_section(f"sso-session {sso_session}"):
        shared = config[f"sso-session {sso_session}"]
        start_url = start_url or shared.get("sso_start_url", "").strip()
        region = region or shared.get("sso_region", "").strip()

    if not start_url or not region:
        raise ConfigurationError(f"SSO configuration not found in profile {profile}")

    return SSOSettings(start_url=start_url, region=region)
