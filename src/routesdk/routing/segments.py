from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SegmentKind(str, Enum):
    STATIC = "static"
    DYNAMIC_SINGLE = "dynamic_single"
    DYNAMIC_CATCH_ALL = "dynamic_catch_all"
    ROUTE_GROUP = "route_group"
    METHOD_COLLECTOR = "method_collector"


@dataclass(frozen=True)
class Segment:
    name: str
    kind: SegmentKind
    param: str | None = None

    @property
    def key(self) -> str:
        """Key of this segment in its parent's children mapping."""
        return self.param if self.param is not None else self.name

    @property
    def is_dynamic(self) -> bool:
        return self.kind in (SegmentKind.DYNAMIC_SINGLE, SegmentKind.DYNAMIC_CATCH_ALL)

    @property
    def is_transparent(self) -> bool:
        # groups and collectors never show up in paths or keys
        return self.kind in (SegmentKind.ROUTE_GROUP, SegmentKind.METHOD_COLLECTOR)

    @property
    def param_type(self) -> str | None:
        if self.kind is SegmentKind.DYNAMIC_CATCH_ALL:
            return "string[]"
        if self.kind is SegmentKind.DYNAMIC_SINGLE:
            return "string"
        return None


def classify(name: str) -> Segment:
    """
    Classify one directory name:
      [[...x]] / [...x] -> catch-all on x (string[])
      [x]               -> single dynamic on x (string)
      (x)               -> route group
      api               -> method collector (case-insensitive)
    Anything else is static.
    """
    if name.startswith("[[...") and name.endswith("]]") and len(name) > 7:
        return Segment(name, SegmentKind.DYNAMIC_CATCH_ALL, name[5:-2])
    if name.startswith("[...") and name.endswith("]") and len(name) > 5:
        return Segment(name, SegmentKind.DYNAMIC_CATCH_ALL, name[4:-1])
    if name.startswith("[") and name.endswith("]") and len(name) > 2:
        return Segment(name, SegmentKind.DYNAMIC_SINGLE, name[1:-1])
    if name.startswith("(") and name.endswith(")") and len(name) > 2:
        return Segment(name, SegmentKind.ROUTE_GROUP)
    if name.lower() == "api":
        return Segment(name, SegmentKind.METHOD_COLLECTOR)
    return Segment(name, SegmentKind.STATIC)


def visible_segments(names: list[str] | tuple[str, ...]) -> list[Segment]:
    """Classify a directory path, dropping groups and collectors."""
    return [seg for seg in (classify(n) for n in names if n) if not seg.is_transparent]
