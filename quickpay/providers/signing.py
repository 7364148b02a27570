"""
Request signing for the payments API (Tl-Signature header).

The signature is a detached ES512 JWS. The signed payload is the request
line, then every signed header in order, then the raw body:

    POST /v3/payments
    Idempotency-Key: 5c0f6a2e-...
    {"amount_in_minor": 100, ...}

The JWS header names the signing key (kid), the signature scheme version
and the signed headers. The compact serialization is returned with its
payload segment removed ("<header>..<signature>").
"""

from jose import jws
from jose.exceptions import JOSEError

from quickpay.engine.errors import ConfigurationError

SIGNATURE_ALGORITHM = "ES512"
SIGNATURE_VERSION = "2"


def build_signing_payload(
    method: str,
    path: str,
    headers: list[tuple[str, str]],
    body: bytes,
) -> bytes:
    lines = [f"{method.upper()} {path}"]
    lines.extend(f"{name}: {value}" for name, value in headers)
    return ("\n".join(lines) + "\n").encode("utf-8") + body


def sign_request(
    kid: str,
    private_key_pem: str,
    method: str,
    path: str,
    headers: list[tuple[str, str]],
    body: bytes,
) -> str:
    """
    Produce a detached JWS over a request.

    Raises:
        ConfigurationError: If the private key cannot sign with ES512.
    """
    payload = build_signing_payload(method, path, headers, body)
    jws_headers = {
        "kid": kid,
        "tl_version": SIGNATURE_VERSION,
        "tl_headers": ",".join(name for name, _ in headers),
    }
    try:
        token = jws.sign(payload, private_key_pem, headers=jws_headers, algorithm=SIGNATURE_ALGORITHM)
    except JOSEError as e:
        raise ConfigurationError(f"Could not sign request with key {kid}: {e}") from e
    header, _, signature = token.split(".")
    return f"{header}..{signature}"
