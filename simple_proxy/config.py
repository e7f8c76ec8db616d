from dataclasses import dataclass
from typing import Optional

from simple_proxy.vars import BIND_ADDRESS, PROXY_TIMEOUT


@dataclass(frozen=True)
class ProxyConfig:
    """Settings for one proxy process, fixed at startup and shared by all requests."""

    local_port: int
    upstream_host: str
    upstream_port: int
    use_tls: bool = True
    verbose: bool = False
    keystore: Optional[str] = None
    passphrase: Optional[str] = None
    bind_address: str = BIND_ADDRESS
    timeout: Optional[float] = PROXY_TIMEOUT

    @property
    def scheme(self) -> str:
        return "https" if self.use_tls else "http"

    @property
    def upstream_authority(self) -> str:
        """The ``host:port`` pair sent as the outbound Host header."""
        return f"{self.upstream_host}:{self.upstream_port}"

    @property
    def upstream_base_url(self) -> str:
        return f"{self.scheme}://{self.upstream_authority}"
