"""
Command descriptors sent to a miner's RPC or Web API

Commands are immutable and hashable so the collector can use them as
dictionary keys when deduplicating requests.
"""
import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union


def _canonical(parameters: Any) -> Optional[str]:
    if parameters is None:
        return None
    return json.dumps(parameters, sort_keys=True, separators=(',', ':'))


@dataclass(frozen=True)
class RPCCommand:
    """cgminer-style socket command, e.g. {"command": "stats"}"""
    command: str
    parameters: Optional[str] = field(default=None)

    def __init__(self, command: str, parameters: Any = None):
        object.__setattr__(self, 'command', command)
        object.__setattr__(self, 'parameters', _canonical(parameters))

    @property
    def params(self) -> Any:
        """Parameters as JSON-compatible Python objects"""
        return None if self.parameters is None else json.loads(self.parameters)

    def __str__(self) -> str:
        if self.parameters is None:
            return f"rpc:{self.command}"
        return f"rpc:{self.command}({self.parameters})"


@dataclass(frozen=True)
class WebCommand:
    """HTTP endpoint call, relative to the vendor's API root"""
    command: str
    method: str = "GET"
    parameters: Optional[str] = field(default=None)

    def __init__(self, command: str, method: str = "GET", parameters: Any = None):
        object.__setattr__(self, 'command', command)
        object.__setattr__(self, 'method', method.upper())
        object.__setattr__(self, 'parameters', _canonical(parameters))

    @property
    def params(self) -> Any:
        return None if self.parameters is None else json.loads(self.parameters)

    def __str__(self) -> str:
        return f"web:{self.method} {self.command}"


MinerCommand = Union[RPCCommand, WebCommand]
