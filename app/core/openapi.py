"""OpenAPI customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata for the controller, mobile and health route groups
- API Key security scheme (``X-API-Key``) applied to mobile routes only

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {
        "name": "Controller",
        "description": "Heartbeats from controller devices and command polling (unauthenticated).",
    },
    {
        "name": "Mobile",
        "description": "Command submission and status polling for the mobile app.",
    },
    {
        "name": "Health",
        "description": "Liveness and readiness checks.",
    },
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security.

    - Injects components.securitySchemes for API Key auth (header ``X-API-Key``)
    - Marks ``/mobile/*`` operations as requiring the key and every other
      operation as open (``security: []``)
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
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
        for tag in _TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            requirement = [{"ApiKeyAuth": []}] if path.startswith("/mobile/") else []
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = requirement

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
