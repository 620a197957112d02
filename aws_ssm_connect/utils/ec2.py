from typing import Any, Dict

from botocore.exceptions import BotoCoreError, ClientError

from aws_ssm_connect.exceptions import AWSCallError, InstanceNotFoundError
from aws_ssm_connect.utils.logger import get_logger

logger = get_logger(__name__)

RUNNING = "running"


def find_running_instance(ec2_client, tag_name: str) -> Dict[str, Any]:
    """
    Returns the first running instance whose Name tag equals ``tag_name``,
    in the order EC2 returns them.
    """
    logger.info(f"🔍 Searching for instances with Name='{tag_name}'...")

    paginator = ec2_client.get_paginator("describe_instances")
    try:
        for page in paginator.paginate(
            Filters=[{"Name": "tag:Name", "Values": [tag_name]}]
        ):
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    if instance.get("State", {}).get("Name") == RUNNING:
                        logger.info(f"✅ Selected target: {instance['InstanceId']}")
                        return instance
    except (ClientError, BotoCoreError) as e:
        raise AWSCallError(f"failed to describe instances: {e}")

    raise InstanceNotFoundError(f"no running instance found with name {tag_name}")
