"""
Base transport capability shared by RPC and Web API clients
"""
from abc import ABC, abstractmethod
from typing import Any

from ..commands import MinerCommand, RPCCommand, WebCommand


class APIError(Exception):
    """Any failure to obtain a usable response for a command"""


class ConnectionFailed(APIError):
    """Host unreachable, refused, reset or timed out"""


class CommandError(APIError):
    """The device answered but reported an error status"""


class ResponseError(APIError):
    """The response could not be parsed or had an unexpected shape"""


class UnsupportedCommand(APIError):
    """The command type cannot be sent through this client"""


class APIClient(ABC):
    """Abstract capability: send one command, get parsed JSON back"""

    @abstractmethod
    def send(self, command: MinerCommand) -> Any:
        """
        Send a command to the miner

        Args:
            command: RPC or Web command descriptor

        Returns:
            Parsed JSON response

        Raises:
            APIError: on transport failure, vendor error status or bad data
        """
        pass


class MultiAPI(APIClient):
    """Routes RPC commands to one client and Web commands to another"""

    def __init__(self, rpc: APIClient = None, web: APIClient = None):
        self.rpc = rpc
        self.web = web

    def send(self, command: MinerCommand) -> Any:
        if isinstance(command, RPCCommand) and self.rpc is not None:
            return self.rpc.send(command)
        if isinstance(command, WebCommand) and self.web is not None:
            return self.web.send(command)
        raise UnsupportedCommand(f"No client configured for {command}")
