from .base import (
    APIClient,
    APIError,
    CommandError,
    ConnectionFailed,
    MultiAPI,
    ResponseError,
    UnsupportedCommand,
)
from .rpc import BTMinerV3RPC, CGMinerRPC, send_rpc_probe
from .web import WebAPI, send_web_probe

__all__ = [
    'APIClient',
    'APIError',
    'CommandError',
    'ConnectionFailed',
    'MultiAPI',
    'ResponseError',
    'UnsupportedCommand',
    'BTMinerV3RPC',
    'CGMinerRPC',
    'send_rpc_probe',
    'WebAPI',
    'send_web_probe',
]
