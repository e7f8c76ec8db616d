import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "simple-proxy")
BIND_ADDRESS = os.environ.get("BIND_ADDRESS", "0.0.0.0")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "info").lower()

# Unset means the httpx client default applies
PROXY_TIMEOUT = (
    float(os.environ["PROXY_TIMEOUT"]) if os.environ.get("PROXY_TIMEOUT") else None
)

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")

# Metrics are served on their own port so that /metrics stays proxied
METRICS_PORT = int(os.getenv("METRICS_PORT", "0")) or None
