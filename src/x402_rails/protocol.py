"""Wire-level constants shared by the 402 responder and the client."""

X402_VERSION = 1
REALM = "x402"
PROOF_HEADER = "X-Payment"
CHALLENGE_HEADER = "WWW-Authenticate"
ACCEPTED_METHODS = ("card", "crypto", "lightning")


def format_challenge_header(payment_id: str, realm: str = REALM) -> str:
    return f'X402 realm="{realm}", payment_id="{payment_id}"'


def parse_challenge_header(value: str | None) -> dict[str, str]:
    """Parse ``X402 realm="x402", payment_id="..."`` into its parameters."""
    if not value:
        return {}
    scheme, _, params = value.partition(" ")
    if scheme.upper() != "X402":
        return {}
    parsed = {}
    for part in params.split(","):
        key, sep, val = part.strip().partition("=")
        if sep:
            parsed[key.strip()] = val.strip().strip('"')
    return parsed
