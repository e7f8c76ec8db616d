"""
Exception logging helpers for the forwarding boundary.

Transport failures coming out of httpx/anyio can arrive wrapped in exception
groups. These helpers log every sub-exception and never raise themselves, so a
broken exception object cannot take down the request handler that reports it.
"""

import logging


def _safe_str(obj) -> str:
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} (string conversion failed)>"


def _sub_exceptions(exception) -> list:
    try:
        return list(getattr(exception, "exceptions", None) or [])
    except Exception:
        return []


def format_exception_message(exception: Exception) -> str:
    """
    Render an exception as a single line, including the sub-exceptions of an
    exception group.

    Args:
        exception: The exception to format

    Returns:
        A description such as ``"boom (Sub-exceptions: ConnectError: refused)"``
    """
    if exception is None:
        return "None"
    main = _safe_str(exception)
    subs = _sub_exceptions(exception)
    if not subs:
        return main
    parts = [f"{type(sub).__name__}: {_safe_str(sub)}" for sub in subs]
    return f"{main} (Sub-exceptions: {'; '.join(parts)})"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception, and each sub-exception when it is an exception group.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g. "[Proxy]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        subs = _sub_exceptions(exception)
        if not subs:
            logger.log(
                level,
                f"{prefix} Exception: {_safe_str(exception)}",
                exc_info=exception if exception is not None else False,
            )
            return

        logger.log(
            level,
            f"{prefix} Exception with {len(subs)} sub-exceptions: {_safe_str(exception)}",
        )
        for i, sub in enumerate(subs):
            logger.log(
                level,
                f"{prefix} Sub-exception {i + 1}: {type(sub).__name__}: {_safe_str(sub)}",
                exc_info=sub,
            )
    except Exception:
        try:
            logger.log(logging.ERROR, f"{prefix} Exception logging failed")
        except Exception:
            pass
