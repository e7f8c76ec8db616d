import logging
import os
import ssl
from typing import Optional, Union

logger = logging.getLogger("uvicorn.error")

_PRIVATE_KEY_MARKER = b"PRIVATE KEY-----"


class KeystoreNotFoundError(FileNotFoundError):
    pass


def check_keystore_exists(keystore: str) -> None:
    logger.info(f"Using keys and certs from {keystore}")
    if not os.path.isfile(keystore):
        raise KeystoreNotFoundError(
            f"The given file for the keystore ({keystore}) does not exist. "
            "Maybe supplying a full path?"
        )


def build_ssl_context(
    keystore: Optional[str], passphrase: Optional[str] = None
) -> Union[ssl.SSLContext, bool]:
    """
    Build the TLS settings used for the upstream connection.

    The keystore is a PEM bundle. Its certificates are trusted when verifying
    the upstream server, and when it also carries a private key, the key and
    certificate chain are presented as the client certificate. Without a
    keystore the HTTP client's default verification is used.
    """
    if not keystore:
        return True

    check_keystore_exists(keystore)
    context = ssl.create_default_context(cafile=keystore)

    with open(keystore, "rb") as fh:
        has_private_key = _PRIVATE_KEY_MARKER in fh.read()
    if has_private_key:
        context.load_cert_chain(certfile=keystore, password=passphrase)
        logger.info("Presenting client certificate from keystore")
    elif passphrase:
        logger.warning("Keystore passphrase given but the keystore holds no private key")

    return context
