"""HTTP client construction."""

from __future__ import annotations

import httpx

from kumono.cli import Args


def create_client(args: Args) -> httpx.AsyncClient:
    """Build the shared HTTP client; raise ValueError for an unusable proxy."""
    timeout = httpx.Timeout(None, connect=args.connect_timeout)
    proxy = None
    if args.proxy:
        try:
            proxy = httpx.Proxy(args.proxy)
        except (ValueError, httpx.InvalidURL) as err:
            raise ValueError(f"invalid proxy URL {args.proxy!r}: {err}") from err
    try:
        return httpx.AsyncClient(timeout=timeout, proxy=proxy, follow_redirects=True)
    except ImportError as err:
        raise ValueError(f"unsupported proxy URL {args.proxy!r}: {err}") from err