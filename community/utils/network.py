"""Request helpers shared by the rate limiter and route handlers."""

from flask import request


def get_client_ip() -> str:
    """Best-effort client IP, honouring reverse proxy headers.

    Order: first ``X-Forwarded-For`` hop, then ``X-Real-IP``, then the
    socket peer address.
    """
    forwarded = request.headers.get('X-Forwarded-For', '')
    if forwarded:
        first_hop = forwarded.split(',')[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get('X-Real-IP', '').strip()
    if real_ip:
        return real_ip

    return request.remote_addr or 'unknown'
