"""
Base class for all recon8 commands
"""

# Standard
import abc
import argparse


class CmdBase(abc.ABC):
    """A subcommand of the recon8 entrypoint. Subclasses set `name` and may
    add their own runtime arguments in add_arguments.
    """

    # The name of the subcommand on the command line
    name: str = None

    def add_subparser(
        self,
        subparsers: argparse._SubParsersAction,
    ) -> argparse.ArgumentParser:
        """Add this command's argument parser subcommand

        Args:
            subparsers (argparse._SubParsersAction): The subparser section for
                the central main parser

        Returns:
            subparser (argparse.ArgumentParser): The configured parser for this
                command
        """
        parser = subparsers.add_parser(self.name, help=self.__doc__)
        self.add_arguments(parser)
        return parser

    def add_arguments(self, parser: argparse.ArgumentParser):
        """Hook to add command specific arguments"""

    @abc.abstractmethod
    def cmd(self, args: argparse.Namespace):
        """Execute the command with the parsed arguments

        Args:
            args (argparse.Namespace): The parsed command line arguments
        """
