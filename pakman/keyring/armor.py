"""ASCII armor for signatures and exported public keys.

An armored block looks like::

    -----BEGIN PAKMAN SIGNATURE-----
    Key-Id: 3f2a9c01d4e5b6a7

    <base64 payload, 64 columns>
    -----END PAKMAN SIGNATURE-----
"""

from __future__ import annotations

import base64
import binascii
import re

from pakman.core.errors import ValidationError

SIGNATURE = "SIGNATURE"
PUBLIC_KEY = "PUBLIC KEY"

_LINE_WIDTH = 64
_BLOCK_RE = re.compile(
    r"-----BEGIN PAKMAN (?P<kind>[A-Z ]+)-----\r?\n"
    r"(?P<body>.*?)"
    r"-----END PAKMAN (?P=kind)-----",
    re.DOTALL,
)


def armor(kind: str, payload: bytes, headers: dict[str, str] | None = None) -> str:
    """Wrap *payload* in an armored block of type *kind*."""
    lines = [f"-----BEGIN PAKMAN {kind}-----"]
    for key, value in (headers or {}).items():
        lines.append(f"{key}: {value}")
    lines.append("")
    encoded = base64.b64encode(payload).decode("ascii")
    lines.extend(
        encoded[i : i + _LINE_WIDTH] for i in range(0, len(encoded), _LINE_WIDTH)
    )
    lines.append(f"-----END PAKMAN {kind}-----")
    return "\n".join(lines) + "\n"


def dearmor_all(text: str, kind: str) -> list[tuple[dict[str, str], bytes]]:
    """Decode every armored block of type *kind* in *text*.

    Returns a list of ``(headers, payload)`` pairs.

    Raises
    ------
    ValidationError
        If a block is malformed or no block of *kind* is present.
    """
    blocks: list[tuple[dict[str, str], bytes]] = []
    for match in _BLOCK_RE.finditer(text):
        if match.group("kind") != kind:
            continue
        head, sep, body = match.group("body").partition("\n\n")
        if not sep:
            # No header section
            head, body = "", match.group("body")
        headers: dict[str, str] = {}
        for line in head.splitlines():
            key, colon, value = line.partition(":")
            if not colon:
                raise ValidationError(f"malformed armor header {line!r}")
            headers[key.strip()] = value.strip()
        try:
            payload = base64.b64decode("".join(body.split()), validate=True)
        except binascii.Error as exc:
            raise ValidationError(f"malformed armor payload: {exc}") from exc
        blocks.append((headers, payload))

    if not blocks:
        raise ValidationError(f"no armored PAKMAN {kind} block found")
    return blocks


def dearmor(text: str, kind: str) -> tuple[dict[str, str], bytes]:
    """Decode the first armored block of type *kind* in *text*."""
    return dearmor_all(text, kind)[0]
