"""Infrastructure layer package."""

from .node import NodeClient
from .api import EsploraAPI
from .rpc import BitcoinRPC

__all__ = ["NodeClient", "EsploraAPI", "BitcoinRPC"]
