"""OpenAPI customization utilities.

Enriches the generated schema with:
- Tags metadata
- The session token security scheme (header configured by
  ``SESSION_TOKEN_HEADER``), applied only to operations that resolve a
  session

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from queue_manager_core.core.config import settings

SECURED_PATH_SUFFIX = "/sessions/current"


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and security."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "SessionToken",
            {
                "type": "apiKey",
                "in": "header",
                "name": settings.session.token_header,
                "description": "Session token returned by POST /v1/sessions.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Sessions",
                "description": "Admission, token resolution and session teardown.",
            },
            {
                "name": "Health",
                "description": "Liveness check with in-memory state diagnostics.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if not path.endswith(SECURED_PATH_SUFFIX):
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = [{"SessionToken": []}]

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
