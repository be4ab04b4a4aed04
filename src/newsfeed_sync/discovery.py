"""Connection URLs that let readers locate a mirrored feed."""

import base64

SCHEME = "slashfeed"

_RFC4648 = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_ZBASE32 = "ybndrfg8ejkmcpqxot1uwisza345h769"
_TO_ZBASE32 = str.maketrans(_RFC4648, _ZBASE32)


def zbase32_encode(data: bytes) -> str:
    """Encode bytes as unpadded z-base-32."""
    encoded = base64.b32encode(data).decode("ascii").rstrip("=")
    return encoded.translate(_TO_ZBASE32)


def format_connection_url(public_key: bytes, encryption_key: bytes) -> str:
    """Build '<scheme>://<public key>#encryptionKey=<key>'."""
    return (
        f"{SCHEME}://{zbase32_encode(public_key)}"
        f"#encryptionKey={zbase32_encode(encryption_key)}"
    )
