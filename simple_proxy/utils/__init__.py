from typing import Iterable, List, Tuple


def decode_for_log(data: bytes) -> str:
    """Decode a body as UTF-8 for log output, replacing bytes that do not decode."""
    return data.decode("utf-8", errors="replace")


def header_pairs_to_str(
    pairs: Iterable[Tuple[bytes, bytes]]
) -> List[Tuple[str, str]]:
    """
    Decode raw header pairs as latin-1.

    Every byte maps to exactly one character, so ``header_pairs_to_bytes``
    gives back the original bytes, obs-text included.
    """
    return [(name.decode("latin-1"), value.decode("latin-1")) for name, value in pairs]


def header_pairs_to_bytes(
    pairs: Iterable[Tuple[str, str]]
) -> List[Tuple[bytes, bytes]]:
    return [(name.encode("latin-1"), value.encode("latin-1")) for name, value in pairs]
