"""OpenAPI customization utilities.

Enriches the generated OpenAPI schema with:
- API Key security scheme (``X-API-Key``), optional on throttled routes
- Tags metadata
- A shared 429 response on every rate-limited operation

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Account",
        "description": "Caller identity and throttling key.",
    },
    {
        "name": "Admin",
        "description": "Rate limit table inspection and counter resets (admin role).",
    },
    {
        "name": "Health",
        "description": "Liveness and rate limit store reachability.",
    },
]

RATE_LIMITED_RESPONSE = {
    "description": "Rate limit exceeded",
    "headers": {
        "Retry-After": {"schema": {"type": "integer"}, "description": "Seconds until the window resets."},
        "X-RateLimit-Limit": {"schema": {"type": "integer"}},
        "X-RateLimit-Remaining": {"schema": {"type": "integer"}},
        "X-RateLimit-Reset": {"schema": {"type": "integer"}, "description": "Epoch seconds."},
    },
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security.

    - Injects components.securitySchemes for API Key auth (header ``X-API-Key``)
    - Marks non-health operations as accepting the API key (anonymous callers
      are allowed, so an empty requirement is listed too)
    - Documents the 429 response on every non-health operation
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Provide your API key via the X-API-Key header.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        tags.extend(t for t in TAGS_METADATA if t["name"] not in existing_tag_names)

        for path, methods in schema.get("paths", {}).items():
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                if path.endswith("/health"):
                    method_obj["security"] = []
                    continue
                method_obj["security"] = [{"ApiKeyAuth": []}, {}]
                method_obj.setdefault("responses", {}).setdefault("429", RATE_LIMITED_RESPONSE)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
