"""
Command line entry point.

Usage:
    simple-proxy -p 8080 -H api.internal -P 9443 [-k bundle.pem] [-s secret] [-v]
"""

import argparse
import logging
import sys
from typing import List, Optional

import uvicorn

from simple_proxy.config import ProxyConfig
from simple_proxy.server import create_app, enable_metrics
from simple_proxy.tls import KeystoreNotFoundError, check_keystore_exists
from simple_proxy.vars import LOG_LEVEL, METRICS_PORT

logger = logging.getLogger("uvicorn.error")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="simple-proxy",
        description="Serve a local HTTP endpoint that forwards every request "
        "to one remote HTTPS server",
    )
    parser.add_argument(
        "-p",
        "--local-port",
        type=int,
        required=True,
        help="[required] port to bind this local webserver to",
    )
    parser.add_argument(
        "-H",
        "--remote-host",
        required=True,
        help="[required] hostname of the remote server, e.g. api.example.com",
    )
    parser.add_argument(
        "-P",
        "--remote-port",
        type=int,
        required=True,
        help="[required] port to proxy to on the remote server",
    )
    parser.add_argument(
        "-k",
        "--keystore",
        help="[optional] path to a PEM bundle with trusted certificates "
        "and an optional client key",
    )
    parser.add_argument("-s", "--passphrase", help="[optional] keystore passphrase")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="[optional] verbose mode"
    )
    return parser


def parse_args(argv: Optional[List[str]] = None) -> ProxyConfig:
    args = build_parser().parse_args(argv)
    return ProxyConfig(
        local_port=args.local_port,
        upstream_host=args.remote_host,
        upstream_port=args.remote_port,
        verbose=args.verbose,
        keystore=args.keystore,
        passphrase=args.passphrase,
    )


def main(argv: Optional[List[str]] = None) -> None:
    config = parse_args(argv)

    if config.keystore:
        try:
            check_keystore_exists(config.keystore)
        except KeystoreNotFoundError as e:
            print(str(e), file=sys.stderr)
            sys.exit(1)

    print(
        f"Starting HTTP Server at http://localhost:{config.local_port}, "
        f"and proxying all requests to {config.upstream_base_url}"
    )
    app = create_app(config)
    if METRICS_PORT:
        enable_metrics(app, METRICS_PORT)

    # Upstream Server and Date headers are relayed, so uvicorn must not add its own
    uvicorn.run(
        app,
        host=config.bind_address,
        port=config.local_port,
        log_level=LOG_LEVEL,
        server_header=False,
        date_header=False,
    )


if __name__ == "__main__":
    main()
