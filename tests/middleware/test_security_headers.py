from fastapi import FastAPI, Response
from fastapi.testclient import TestClient

from accesscore.middleware.security_headers import (
    SecurityHeadersConfig,
    SecurityHeadersMiddleware,
    get_security_headers,
)


def test_default_headers():
    headers = get_security_headers()

    assert headers["X-Content-Type-Options"] == "nosniff"
    assert headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert headers["Permissions-Policy"] == "camera=(), microphone=(), geolocation=()"
    assert headers["X-Frame-Options"] == "DENY"
    assert headers["X-XSS-Protection"] == "1; mode=block"
    assert "default-src 'self'" in headers["Content-Security-Policy"]
    assert "Strict-Transport-Security" not in headers


def test_config_overrides():
    headers = get_security_headers(SecurityHeadersConfig(
        content_security_policy="default-src 'none'",
        disable_frame_options=True,
        disable_xss_protection=True,
        hsts_max_age=3600,
    ))

    assert headers["Content-Security-Policy"] == "default-src 'none'"
    assert "X-Frame-Options" not in headers
    assert "X-XSS-Protection" not in headers
    assert headers["Strict-Transport-Security"] == "max-age=3600; includeSubDomains"


def test_middleware_adds_headers_without_overwriting():
    app = FastAPI()
    app.add_middleware(SecurityHeadersMiddleware)

    @app.get("/plain")
    def plain():
        return {"ok": True}

    @app.get("/framed")
    def framed(response: Response):
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        return {"ok": True}

    client = TestClient(app)

    assert client.get("/plain").headers["x-frame-options"] == "DENY"
    framed_response = client.get("/framed")
    assert framed_response.headers["x-frame-options"] == "SAMEORIGIN"
    assert framed_response.headers["x-content-type-options"] == "nosniff"
