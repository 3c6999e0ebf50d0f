from statusboard.endpoints.registry import (
    EndpointDefinition,
    EndpointRegistry,
    parse_endpoint,
)

__all__ = [
    "EndpointDefinition",
    "EndpointRegistry",
    "parse_endpoint",
]
