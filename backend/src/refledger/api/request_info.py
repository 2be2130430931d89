"""Helpers for reading client details off a request."""

from fastapi import Request

# Checked in order; x-forwarded-for may hold a chain, the client is the first hop
IP_HEADERS = ("x-forwarded-for", "cf-connecting-ip", "x-real-ip")


def client_ip(request: Request) -> str | None:
    """Best-effort client IP behind proxies."""
    for header in IP_HEADERS:
        value = request.headers.get(header)
        if value:
            first = value.split(",")[0].strip()
            if first:
                return first
    return request.client.host if request.client else None


def user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent")


def referer(request: Request) -> str | None:
    return request.headers.get("referer")
