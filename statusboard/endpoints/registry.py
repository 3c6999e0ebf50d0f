"""Endpoint registry — loads endpoints.json / endpoints.yaml into typed models.

Single source of truth for the targets the status page probes.
Entries are validated here so the health engine only ever sees
well-formed definitions.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Literal

import httpx
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

REGISTRY_PATH = Path(__file__).parent.parent.parent / "endpoints.json"

HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]

# Methods whose body is sent as a JSON payload
PAYLOAD_METHODS = frozenset({"POST", "PUT", "PATCH"})


# ── Data model ───────────────────────────────────────────────────────────────


class EndpointDefinition(BaseModel):
    """Definition of a single HTTP endpoint to probe."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    url: str
    method: HttpMethod = "GET"
    expected_status: int = Field(default=200, alias="expectedStatus", ge=100, le=599)
    description: str | None = None
    headers: dict[str, str] | None = None
    body: Any = None

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("expected_status", mode="before")
    @classmethod
    def _strict_status(cls, v: Any) -> Any:
        # Reject bools and floats like 200.5 before int coercion
        if isinstance(v, bool) or (isinstance(v, float) and not v.is_integer()):
            raise ValueError("expectedStatus must be an integer")
        return v

    @field_validator("url")
    @classmethod
    def _absolute_url(cls, v: str) -> str:
        try:
            parsed = httpx.URL(v)
        except Exception as e:
            raise ValueError(f"invalid URL: {v!r}") from e
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise ValueError(f"URL must be absolute http(s): {v!r}")
        return v

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "method": self.method,
            "expectedStatus": self.expected_status,
            "description": self.description,
            "headers": dict(self.headers) if self.headers else None,
            "body": self.body,
        }


# ── Registry ─────────────────────────────────────────────────────────────────


class EndpointRegistry:
    """Loads and caches endpoint definitions from a JSON or YAML file."""

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path else REGISTRY_PATH
        self._endpoints: list[EndpointDefinition] = []
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def load(self, force: bool = False) -> list[EndpointDefinition]:
        """Parse the definitions file and return the valid entries in file order."""
        if self._loaded and not force:
            return self._endpoints

        self._endpoints = []
        if not self._path.exists():
            logger.warning("Endpoints file not found: %s", self._path)
            self._loaded = True
            return self._endpoints

        try:
            raw = _read_document(self._path)
        except Exception as e:
            logger.error("Failed to parse %s: %s", self._path, e)
            self._loaded = True
            return self._endpoints

        seen: set[str] = set()
        for entry in _entries(raw):
            try:
                endpoint = parse_endpoint(entry)
            except (ValidationError, TypeError) as e:
                logger.warning("Skipping malformed endpoint entry: %s", e)
                continue
            if endpoint.id in seen:
                logger.warning("Skipping duplicate endpoint id: %s", endpoint.id)
                continue
            seen.add(endpoint.id)
            self._endpoints.append(endpoint)

        self._loaded = True
        logger.info("Loaded %d endpoints from %s", len(self._endpoints), self._path)
        return self._endpoints

    @property
    def endpoints(self) -> list[EndpointDefinition]:
        return self.load()

    def get(self, endpoint_id: str) -> EndpointDefinition | None:
        return next((e for e in self.endpoints if e.id == endpoint_id), None)

    def reload(self) -> list[EndpointDefinition]:
        """Force reload from disk."""
        return self.load(force=True)

    def to_dict(self) -> list[dict[str, Any]]:
        return [e.to_dict() for e in self.endpoints]


# ── Parsers ──────────────────────────────────────────────────────────────────


def parse_endpoint(raw: dict[str, Any]) -> EndpointDefinition:
    """Validate one raw entry. Raises ``ValidationError`` when malformed."""
    if not isinstance(raw, dict):
        raise TypeError(f"endpoint entry must be a mapping, got {type(raw).__name__}")
    return EndpointDefinition.model_validate(raw)


def _read_document(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        return yaml.safe_load(text)
    return json.loads(text)


def _entries(raw: Any) -> list[Any]:
    if isinstance(raw, dict):
        return raw.get("endpoints") or []
    if isinstance(raw, list):
        return raw
    return []
