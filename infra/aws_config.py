"""AWS SDK configuration for the reconciler.

The client factory imports from this module to keep botocore tuning in one
place. Retries are always off: a failed provider call aborts the command.
"""

from botocore.config import Config

from infra.config import Settings, get_settings
from version import ENGINE_NAME, ENGINE_VERSION

# One attempt per call, whatever the environment or AWS config file says.
NO_RETRIES = {"max_attempts": 0, "mode": "standard"}


def build_sdk_config(settings: Settings | None = None) -> Config:
    """Return the botocore ``Config`` shared by every client of one command."""
    aws_cfg = (settings or get_settings()).aws
    return Config(
        retries=dict(NO_RETRIES),
        user_agent_extra=f"{ENGINE_NAME}/{ENGINE_VERSION}",
        connect_timeout=int(aws_cfg.connect_timeout),
        read_timeout=int(aws_cfg.timeout),
    )
