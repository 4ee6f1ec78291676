"""
This module holds all of the command classes for recon8's main entrypoint
"""

# Local
from .base import CmdBase
from .run_controllers_cmd import RunControllersCmd
