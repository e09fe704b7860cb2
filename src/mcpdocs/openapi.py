"""OpenAPI document queries and markdown rendering.

Backs the Pet Store MCP server's tools: endpoint listing, endpoint and schema
lookups, API info, and markdown documentation in four formats.

Example:
    >>> from mcpdocs.openapi import DEFAULT_SPEC_PATH, load_spec, render_markdown
    >>> spec = load_spec(DEFAULT_SPEC_PATH)
    >>> markdown = render_markdown(spec, format="overview")
    >>> markdown.splitlines()[0]
    '# Pet Store API'
"""

from __future__ import annotations

import json
from importlib import resources
from pathlib import Path
from typing import Any

DOCS_FORMATS: tuple[str, ...] = ("full", "overview", "endpoints", "schemas")

HTTP_METHODS: tuple[str, ...] = (
    "get",
    "put",
    "post",
    "delete",
    "options",
    "head",
    "patch",
    "trace",
)

DEFAULT_SPEC_PATH = Path(str(resources.files("mcpdocs").joinpath("data/petstore-api.json")))


def load_spec(path: Path | str) -> dict[str, Any]:
    """Read and parse an OpenAPI JSON document."""
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _operations(spec: dict[str, Any]) -> list[tuple[str, str, dict[str, Any]]]:
    """(path, method, operation) triples in document order."""
    ops = []
    for path, path_item in spec.get("paths", {}).items():
        for method, operation in path_item.items():
            if method.lower() in HTTP_METHODS and isinstance(operation, dict):
                ops.append((path, method.lower(), operation))
    return ops


def list_endpoints(spec: dict[str, Any], tag: str | None = None) -> list[dict[str, Any]]:
    """Summaries of every operation, optionally restricted to one tag."""
    endpoints = []
    for path, method, operation in _operations(spec):
        tags = operation.get("tags", [])
        if tag and tags and tag not in tags:
            continue
        endpoints.append(
            {
                "path": path,
                "method": method.upper(),
                "summary": operation.get("summary"),
                "description": operation.get("description"),
                "tags": tags,
                "operationId": operation.get("operationId"),
            }
        )
    return endpoints


def get_endpoint_details(spec: dict[str, Any], path: str, method: str) -> dict[str, Any]:
    """Full operation object for ``method`` on ``path``.

    Raises:
        LookupError: If the path or the method is not defined.
    """
    path_item = spec.get("paths", {}).get(path)
    if path_item is None:
        raise LookupError(f"Path not found: {path}")
    operation = path_item.get(method.lower())
    if operation is None:
        raise LookupError(f"Method {method} not found for path {path}")
    return operation


def get_schemas(spec: dict[str, Any], name: str | None = None) -> dict[str, Any]:
    """All component schemas, or the one called ``name``.

    Raises:
        LookupError: If ``name`` is given and not defined.
    """
    schemas = spec.get("components", {}).get("schemas", {})
    if name:
        if name not in schemas:
            raise LookupError(f"Schema not found: {name}")
        return schemas[name]
    return schemas


def api_info(spec: dict[str, Any]) -> dict[str, Any]:
    info = spec.get("info", {})
    return {
        "title": info.get("title"),
        "version": info.get("version"),
        "description": info.get("description"),
        "contact": info.get("contact"),
        "servers": spec.get("servers"),
    }


def _property_type(prop: dict[str, Any]) -> str:
    if "$ref" in prop:
        return prop["$ref"].rsplit("/", 1)[-1]
    if prop.get("type") == "array" and isinstance(prop.get("items"), dict):
        return f"array of {_property_type(prop['items'])}"
    return str(prop.get("type", "object"))


def _render_overview(spec: dict[str, Any]) -> str:
    info = spec.get("info", {})
    out = f"# {info.get('title', 'API')}\n\n"
    if info.get("description"):
        out += f"{info['description']}\n\n"
    out += f"**Version:** {info.get('version', 'unknown')}\n"
    contact = info.get("contact")
    if contact:
        out += f"**Contact:** {contact.get('name', '')} ({contact.get('email', '')})\n"
    out += "\n"

    servers = spec.get("servers")
    if servers:
        out += "## Servers\n\n"
        for server in servers:
            out += f"- **{server.get('description', 'Server')}:** `{server['url']}`\n"
        out += "\n"
    return out


def _render_endpoints(spec: dict[str, Any], include_examples: bool) -> str:
    out = "## API Endpoints\n\n"

    by_tag: dict[str, list[tuple[str, str, dict[str, Any]]]] = {}
    for path, method, operation in _operations(spec):
        for tag in operation.get("tags") or ["default"]:
            by_tag.setdefault(tag, []).append((path, method, operation))

    for tag, endpoints in by_tag.items():
        out += f"### {tag[:1].upper()}{tag[1:]}\n\n"
        for path, method, operation in endpoints:
            out += f"#### {method.upper()} {path}\n\n"
            if operation.get("summary"):
                out += f"{operation['summary']}\n\n"
            if operation.get("description"):
                out += f"{operation['description']}\n\n"

            if include_examples and operation.get("parameters"):
                out += "**Parameters:**\n"
                for param in operation["parameters"]:
                    description = param.get("description") or "No description"
                    out += f"- `{param['name']}` ({param.get('in', 'query')}) - {description}\n"
                out += "\n"

            if include_examples and operation.get("responses"):
                out += "**Responses:**\n"
                for code, response in operation["responses"].items():
                    out += f"- `{code}` - {response.get('description', '')}\n"
                out += "\n"
    return out


def _render_schemas(spec: dict[str, Any]) -> str:
    out = "## Data Models\n\n"
    for name, schema in get_schemas(spec).items():
        out += f"### {name}\n\n"
        if schema.get("description"):
            out += f"{schema['description']}\n\n"

        properties = schema.get("properties")
        if properties:
            required = set(schema.get("required", []))
            out += "**Properties:**\n"
            for prop_name, prop in properties.items():
                marker = " (required)" if prop_name in required else ""
                description = prop.get("description") or "No description"
                out += f"- `{prop_name}` ({_property_type(prop)}){marker} - {description}\n"
            out += "\n"

        if schema.get("enum"):
            out += f"**Allowed values:** {', '.join(str(v) for v in schema['enum'])}\n\n"
    return out


def render_markdown(
    spec: dict[str, Any],
    format: str = "full",
    include_examples: bool = True,
) -> str:
    """Render API documentation as markdown.

    Args:
        spec: Parsed OpenAPI document.
        format: ``overview`` (title, version, contact, servers), ``endpoints``
            (operations grouped by tag), ``schemas`` (data models) or ``full``
            (all three, in that order).
        include_examples: Include parameter and response lists for endpoints.

    Raises:
        ValueError: For an unknown format.
    """
    if format not in DOCS_FORMATS:
        raise ValueError(f"Unknown format: {format}. Expected one of {', '.join(DOCS_FORMATS)}")
    out = ""
    if format in ("overview", "full"):
        out += _render_overview(spec)
    if format in ("endpoints", "full"):
        out += _render_endpoints(spec, include_examples)
    if format in ("schemas", "full"):
        out += _render_schemas(spec)
    return out
