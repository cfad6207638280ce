from __future__ import annotations

from typing import Sequence

from routesdk.routing.segments import SegmentKind, visible_segments


def path_template(segments: Sequence[str]) -> str:
    """
    Template literal for a route path, evaluated at call time:
      ("posts", "[postId]")  -> `/posts/${postId}`
      ("blog", "[...slug]")  -> `/blog/${slug.join("/")}`
    Route groups and collectors contribute nothing; the root is `/`.
    """
    parts: list[str] = []
    for seg in visible_segments(list(segments)):
        if seg.kind is SegmentKind.DYNAMIC_CATCH_ALL:
            parts.append("${" + f'{seg.param}.join("/")' + "}")
        elif seg.kind is SegmentKind.DYNAMIC_SINGLE:
            parts.append("${" + f"{seg.param}" + "}")
        else:
            parts.append(seg.name)
    return "`/" + "/".join(p for p in parts if p) + "`"


def route_path(segments: Sequence[str]) -> str:
    """Human-readable path (`/posts/[postId]`), used for listings and logs."""
    names = [seg.name for seg in visible_segments(list(segments))]
    return "/" + "/".join(names)
