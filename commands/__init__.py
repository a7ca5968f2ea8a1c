"""CLI commands: `res`, `ec2`, `gci` and `ssm`."""

from commands.gci import GciCommand
from commands.inventory import Ec2Command
from commands.res import ResCommand
from commands.ssm import SsmCommand

__all__ = ["Ec2Command", "GciCommand", "ResCommand", "SsmCommand"]
