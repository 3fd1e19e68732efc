from django.conf import settings


def client_address(request) -> str:
    """Client address as seen by the outermost trusted proxy.

    Each of the ``TRUSTED_PROXY_COUNT`` proxies in front of the app appends
    one X-Forwarded-For hop, so the hop that many places from the right is the
    last one a client cannot forge. With no trusted proxies the forwarding
    headers are ignored and ``REMOTE_ADDR`` is used.
    """
    remote = request.META.get("REMOTE_ADDR") or "unknown"
    proxies = int(getattr(settings, "TRUSTED_PROXY_COUNT", 0) or 0)
    if proxies <= 0:
        return remote

    hops = [hop.strip() for hop in request.META.get("HTTP_X_FORWARDED_FOR", "").split(",") if hop.strip()]
    if len(hops) >= proxies:
        return hops[-proxies]
    # set by the proxy itself, not passed through from the client
    real_ip = request.META.get("HTTP_X_REAL_IP", "").strip()
    return real_ip or remote


class ClientAddressMiddleware:
    """Attach the resolved client address as ``request.client_ip``."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.client_ip = client_address(request)
        return self.get_response(request)
