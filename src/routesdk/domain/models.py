from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

from routesdk.domain.types import UNKNOWN, TypeExpr, Unknown, Void

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")


class NamedImport(BaseModel):
    name: str
    alias: Optional[str] = None

    @property
    def local_name(self) -> str:
        return self.alias or self.name


class ImportSpec(BaseModel):
    module_specifier: str
    default_import: Optional[str] = None
    namespace_import: Optional[str] = None
    named_imports: list[NamedImport] = Field(default_factory=list)
    is_type_only: bool = False

    # directory of the route file that declared it; used to rebase relative specifiers
    origin_dir: Optional[Path] = Field(default=None, exclude=True)

    def local_names(self) -> list[str]:
        names: list[str] = []
        if self.default_import:
            names.append(self.default_import)
        if self.namespace_import:
            names.append(self.namespace_import)
        names.extend(ni.local_name for ni in self.named_imports)
        return names


class PayloadMarker(str, Enum):
    PLAIN = "plain"
    REDIRECT = "redirect"
    STREAMING = "streaming"
    PAGINATED = "paginated"
    MUTATION = "mutation"


@dataclass(frozen=True)
class Pagination:
    page_variable: str = "page"
    page_query_key: str = "page"
    page_size_source: Optional[str] = None


@dataclass(frozen=True)
class HandlerDescriptor:
    """One HTTP verb implemented by a route file."""

    name: str
    input_type: TypeExpr = UNKNOWN
    output_type: TypeExpr = UNKNOWN
    body_text: str = ""
    param_name: str = "req"
    route_params_expr: Optional[str] = None
    body_variable_name: Optional[str] = None
    body_params: tuple[str, ...] = ()
    marker: PayloadMarker = PayloadMarker.PLAIN
    redirect_url: Optional[str] = None
    pagination: Optional[Pagination] = None
    declared_return_type: Optional[str] = None

    @property
    def is_get(self) -> bool:
        return self.name == "GET"

    @property
    def is_redirect(self) -> bool:
        return self.marker is PayloadMarker.REDIRECT

    @property
    def is_streaming(self) -> bool:
        return self.marker is PayloadMarker.STREAMING

    @property
    def is_paginated(self) -> bool:
        return self.marker is PayloadMarker.PAGINATED

    @property
    def is_mutation_hint(self) -> bool:
        return self.marker is PayloadMarker.MUTATION

    @property
    def consumes_payload(self) -> bool:
        return (
            not isinstance(self.input_type, (Unknown, Void))
            or bool(self.body_variable_name)
            or bool(self.body_params)
        )

    @property
    def uses_body(self) -> bool:
        """Whether generated accessors take a `body` option."""
        return not self.is_get and self.consumes_payload

    @property
    def input_text(self) -> str:
        return self.input_type.render()

    @property
    def output_text(self) -> str:
        return self.output_type.render()


@dataclass(frozen=True)
class AnalysisResult:
    methods: tuple[HandlerDescriptor, ...] = ()
    imports: tuple[ImportSpec, ...] = field(default_factory=tuple)
