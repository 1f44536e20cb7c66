"""
UTM propagation.

Every utm_* param on the inbound /s/{slug} request is carried to the chosen
destination, but ONLY when that destination is an http(s) URL. Custom scheme
URIs (myapp://...) and intent:// URIs are never touched: apps parse their own
query strings and a stray utm_source can break the route.
"""

from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from app.core.deeplinks import is_web_url


def extract_utm_params(query_params) -> dict[str, str]:
    """utm_* subset of a query mapping (Starlette QueryParams or dict)."""
    return {k: v for k, v in query_params.items() if k.startswith("utm_") and v}


def with_utm(url: str | None, utm: dict[str, str] | None, policy: str = "always_override") -> str | None:
    """
    Append UTM params to an http(s) URL.

    policy:
      "always_override"  inbound UTMs win over ones already on the URL
      "only_if_missing"  keep the destination's own UTMs
    """
    if not url or not utm or not is_web_url(url):
        return url

    parsed = urlparse(url)
    existing = parse_qs(parsed.query, keep_blank_values=True)

    for key, value in utm.items():
        if policy == "only_if_missing" and key in existing:
            continue
        existing[key] = [str(value)]

    new_query = urlencode(existing, doseq=True)
    return urlunparse(parsed._replace(query=new_query))
