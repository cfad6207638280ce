"""Exceptions raised by the SDK generator."""

from __future__ import annotations

from pathlib import Path


class RouteSdkError(Exception):
    """Base exception for generator errors."""


class ConfigError(RouteSdkError):
    """Raised when the generator configuration is invalid."""


class RouteParseError(RouteSdkError):
    """Raised when a route file cannot be read or parsed."""

    def __init__(self, message: str, route_file: Path | None = None) -> None:
        self.route_file = route_file
        full_message = message if route_file is None else f"[{route_file}] {message}"
        super().__init__(full_message)


class TreeNavigationError(RouteSdkError):
    """Raised when an incremental update cannot locate its ancestor node."""

    def __init__(self, segment: str, path: tuple[str, ...]) -> None:
        self.segment = segment
        self.path = path
        super().__init__(f"Could not find node for '{segment}' (path: {'/'.join(path) or '/'})")


class ArtifactWriteError(RouteSdkError):
    """Raised when a generated artifact cannot be written."""

    def __init__(self, destination: Path, reason: str) -> None:
        self.destination = destination
        super().__init__(f"Could not write {destination}: {reason}")
