"""Client address resolution behind proxies."""

from starlette.requests import Request


def get_client_ip(request: Request) -> str:
    """
    Resolve the originating client address.

    Order: first entry of ``X-Forwarded-For``, ``X-Real-IP``, the socket peer
    address, then the literal ``"unknown"``.
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return "unknown"
