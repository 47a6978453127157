"""py-etcd-leader: etcd v3 backend for leaderkey.

Provides EtcdGatewayClient, an implementation of the CoordinationServicePort
interface from leaderkey that talks to etcd through its HTTP/JSON gateway.
"""

from .client import EtcdGatewayClient

__all__ = ["EtcdGatewayClient"]
__version__ = "0.1.0"
