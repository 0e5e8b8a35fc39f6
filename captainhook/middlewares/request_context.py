from fastapi import Request


def get_client_ip(request: Request) -> str:
    """
    Get the real client IP address, considering proxy headers

    The nginx site sets X-Real-IP and X-Forwarded-For, so behind the
    proxy these carry the caller's address rather than 127.0.0.1.

    Args:
        request: FastAPI Request object

    Returns:
        str: Client IP address
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, take the first one
        return forwarded_for.split(',')[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    forwarded = request.headers.get("Forwarded")
    if forwarded:
        # RFC 7239: for=192.0.2.60;proto=http, for="[2001:db8::1]:4711"
        first_hop = forwarded.split(',')[0]
        for part in first_hop.split(';'):
            part = part.strip()
            if part.lower().startswith('for='):
                node = part.split('=', 1)[1].strip().strip('"')
                if node.startswith('['):
                    # Bracketed IPv6, optionally followed by :port
                    return node[1:].split(']', 1)[0]
                return node

    return request.client.host if request.client else "unknown"
