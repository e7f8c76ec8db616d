from simple_proxy.forwarder.methods import HttpMethod
from simple_proxy.forwarder.service import Forwarder

__all__ = ["Forwarder", "HttpMethod"]
