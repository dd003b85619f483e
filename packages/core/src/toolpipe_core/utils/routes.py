TOOL_ROUTE_PREFIX = "/tool/"


def tool_route(directive: str) -> str:
    """Return the site route of a generated tool.

    The only place a directive is turned into a route; every caller that links
    to a tool goes through here.
    """
    return f"{TOOL_ROUTE_PREFIX}{directive.strip('/')}/"


def tool_url(base_url: str, directive: str) -> str:
    return base_url.rstrip("/") + tool_route(directive)
