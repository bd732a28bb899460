"""Minimal deterministic OpenAPI document for the installer API.

Scope:
- Auth endpoints: /iam/auth/login (POST), /iam/auth/me (GET)
- Repository listing/detail and the state-changing repository + plugin actions
- Repository schema carries `x-transitions`, generated from the runtime
  plugin state transition table so docs never drift from the FSM.
"""
from typing import Any, Dict, List, Tuple
from .constants.plugin_state import PLUGIN_STATE_TRANSITIONS, ALL_STATE_VALUES

__all__ = ["build_openapi_spec"]

# (path, method, summary, required permission, success status)
ACTIONS: List[Tuple[str, str, str, str, str]] = [
    ("/repositories", "post", "Register repository (optionally with files to scan)", "PLUGINS.SCAN", "201"),
    ("/repositories/refresh", "post", "Refresh state of many repositories", "PLUGINS.SCAN", "200"),
    ("/repositories/cache", "delete", "Reset every repository to unknown", "PLUGINS.SCAN", "200"),
    ("/repositories/statistics", "get", "Count repositories per state", "PLUGINS.READ", "200"),
    ("/repositories/{owner}/{name}/scan", "post", "Detect plugin headers and refresh", "PLUGINS.SCAN", "200"),
    ("/repositories/{owner}/{name}/refresh", "post", "Refresh repository state", "PLUGINS.SCAN", "200"),
    ("/repositories/{owner}/{name}/state", "put", "Guarded manual state change", "PLUGINS.SCAN", "200"),
    ("/plugins/install", "post", "Install (and optionally activate) a repository", "PLUGINS.INSTALL", "201"),
    ("/plugins/activate", "post", "Activate installed plugin", "PLUGINS.ACTIVATE", "200"),
    ("/plugins/deactivate", "post", "Deactivate installed plugin", "PLUGINS.ACTIVATE", "200"),
    ("/plugins/batch/install", "post", "Install many repositories", "PLUGINS.INSTALL", "200"),
    ("/plugins/batch/activate", "post", "Activate many plugins", "PLUGINS.ACTIVATE", "200"),
    ("/plugins/batch/deactivate", "post", "Deactivate many plugins", "PLUGINS.ACTIVATE", "200"),
]

CACHING_HEADERS = {
    "ETag": {"schema": {"type": "string"}},
    "Last-Modified": {"schema": {"type": "string"}},
    "X-Last-Modified-ISO": {"schema": {"type": "string"}},
}


def _repository_schema() -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "id": {"type": "integer"},
            "full_name": {"type": "string"},
            "owner": {"type": "string"},
            "name": {"type": "string"},
            "state": {"type": "string", "enum": list(ALL_STATE_VALUES)},
            "is_installed": {"type": "boolean"},
            "is_plugin": {"type": "boolean"},
            "main_file": {"type": "string", "nullable": True},
            "plugin_headers": {"type": "object"},
            "last_error": {"type": "string", "nullable": True},
        },
        "required": ["id", "full_name", "state"],
        "x-transitions": {
            src.value: sorted(t.value for t in targets)
            for src, targets in PLUGIN_STATE_TRANSITIONS.items()
        },
    }


def _path_params(path: str) -> List[Dict[str, Any]]:
    return [
        {"name": p, "in": "path", "required": True, "schema": {"type": "string"}}
        for p in ("owner", "name") if f"{{{p}}}" in path
    ]


def build_openapi_spec() -> Dict[str, Any]:
    list_response = {
        "description": "OK",
        "headers": CACHING_HEADERS,
        "content": {"application/json": {"schema": {
            "type": "object",
            "properties": {
                "data": {"type": "array", "items": {"$ref": "#/components/schemas/Repository"}},
                "pagination": {"$ref": "#/components/schemas/Pagination"},
            },
        }}},
    }
    paths: Dict[str, Any] = {
        "/iam/auth/login": {"post": {"summary": "Login", "security": [], "responses": {"200": {"description": "JWT issued"}}}},
        "/iam/auth/me": {"get": {"summary": "Current user", "responses": {"200": {"description": "OK"}}}},
        "/repositories": {
            "get": {
                "summary": "List repositories",
                "parameters": [
                    {"$ref": "#/components/parameters/LimitParam"},
                    {"$ref": "#/components/parameters/OffsetParam"},
                    {"name": "state", "in": "query", "schema": {"type": "string", "enum": list(ALL_STATE_VALUES)}},
                    {"name": "sort", "in": "query", "schema": {"type": "string"},
                     "description": "Comma list of full_name,state,updated_at,id; prefix '-' for descending"},
                ],
                "responses": {"200": list_response, "304": {"description": "Not Modified"},
                              "400": {"$ref": "#/components/responses/BadRequest"}},
                "x-required-permissions": ["PLUGINS.READ"],
            },
        },
        "/repositories/{owner}/{name}": {
            "get": {
                "summary": "Get repository",
                "parameters": _path_params("{owner}/{name}"),
                "responses": {"200": {"description": "OK", "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Repository"}}}},
                              "404": {"$ref": "#/components/responses/NotFound"}},
                "x-required-permissions": ["PLUGINS.READ"],
            },
        },
    }
    for path, method, summary, perm, status in ACTIONS:
        op: Dict[str, Any] = {
            "summary": summary,
            "responses": {status: {"description": "OK"}, "400": {"$ref": "#/components/responses/BadRequest"}},
            "x-required-permissions": [perm],
        }
        params = _path_params(path)
        if params:
            op["parameters"] = params
            op["responses"]["404"] = {"$ref": "#/components/responses/NotFound"}
        paths.setdefault(path, {})[method] = op

    tag_desc: Dict[str, str] = {}
    for path, ops in paths.items():
        tag = path.split("/")[1].capitalize()
        for method, od in ops.items():
            rid = path.strip("/").replace("/", "_").replace("{", "").replace("}", "")
            od["operationId"] = f"auto_{method}_{rid}"
            od["tags"] = [tag]
        tag_desc[tag] = f"{tag} endpoints"

    return {
        "openapi": "3.0.3",
        "info": {"title": "Plugin Batch Installer API", "version": "0.1.0"},
        "paths": paths,
        "components": {
            "schemas": {
                "Repository": _repository_schema(),
                "Pagination": {
                    "type": "object",
                    "properties": {k: {"type": "integer"} for k in ("total", "limit", "offset", "returned")},
                    "required": ["total", "limit", "offset", "returned"],
                },
                "Error": {
                    "type": "object",
                    "properties": {"error": {"type": "object", "properties": {
                        "status": {"type": "integer"}, "title": {"type": "string"}, "detail": {"type": "string"},
                    }}},
                    "required": ["error"],
                },
            },
            "responses": {"NotFound": {"description": "Not Found"}, "BadRequest": {"description": "Bad Request"}},
            "securitySchemes": {"BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
            "parameters": {
                "LimitParam": {"name": "limit", "in": "query", "schema": {"type": "integer", "default": 50}},
                "OffsetParam": {"name": "offset", "in": "query", "schema": {"type": "integer", "default": 0}},
            },
        },
        "security": [{"BearerAuth": []}],
        "tags": [{"name": n, "description": d} for n, d in sorted(tag_desc.items())],
    }
