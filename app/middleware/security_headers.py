"""
Response hardening for a JSON-only API.

Nothing served here is meant to be rendered or framed, so the CSP denies
every source. JSON bodies may carry user data and are never cached.
"""

_BASE_HEADERS = {
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

_HSTS = "max-age=31536000; includeSubDomains"


def init_security_headers(app):
    headers = dict(_BASE_HEADERS)
    if not app.debug:
        headers["Strict-Transport-Security"] = _HSTS

    @app.after_request
    def _harden(response):
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        if response.mimetype == "application/json":
            response.headers.setdefault("Cache-Control", "no-store")
        response.headers.pop("Server", None)
        return response
