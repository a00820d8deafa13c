"""PEM text encoding for DER certificate and key bytes."""

import base64
import binascii
import re
from typing import NamedTuple

from .errors import MalformedInputError

CERTIFICATE = "CERTIFICATE"
EC_PRIVATE_KEY = "EC PRIVATE KEY"

LINE_LENGTH = 64

_PEM_BLOCK_RE = re.compile(
    r"-----BEGIN (?P<begin>[^\r\n]*?)-----\r?\n"
    r"(?P<body>.*?)"
    r"-----END (?P<end>[^\r\n]*?)-----",
    re.DOTALL,
)


class PemBlock(NamedTuple):
    """Decoded PEM block: type tag plus raw DER bytes."""

    block_type: str
    der: bytes


def encode(block_type: str, der: bytes) -> bytes:
    """Encode DER bytes as a single PEM block with the given type tag."""
    body = base64.b64encode(der).decode("ascii")
    lines = [f"-----BEGIN {block_type}-----"]
    lines.extend(body[i : i + LINE_LENGTH] for i in range(0, len(body), LINE_LENGTH))
    lines.append(f"-----END {block_type}-----")
    return ("\n".join(lines) + "\n").encode("ascii")


def decode(pem: bytes | str) -> PemBlock:
    """Decode the first PEM block found in the input.

    Args:
        pem: PEM text, as bytes or str. Leading/trailing content is ignored.

    Returns:
        PemBlock with the block type and DER payload

    Raises:
        MalformedInputError: If no block is found, labels mismatch,
            or the body is not valid base64
    """
    if isinstance(pem, bytes):
        try:
            text = pem.decode("ascii")
        except UnicodeDecodeError as e:
            raise MalformedInputError("PEM input is not ASCII text") from e
    else:
        text = pem

    match = _PEM_BLOCK_RE.search(text)
    if match is None:
        raise MalformedInputError("no PEM block found in input")

    block_type = match.group("begin")
    if match.group("end") != block_type:
        raise MalformedInputError(
            f"PEM END label {match.group('end')!r} does not match BEGIN label {block_type!r}"
        )

    body = "".join(match.group("body").split())
    try:
        der = base64.b64decode(body, validate=True)
    except binascii.Error as e:
        raise MalformedInputError(f"invalid base64 in {block_type} PEM block: {e}") from e

    return PemBlock(block_type=block_type, der=der)
