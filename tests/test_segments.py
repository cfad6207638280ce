from routesdk.codegen.paths import path_template, route_path
from routesdk.routing.segments import SegmentKind, classify, visible_segments


def test_classify_segment_kinds():
    assert classify("users").kind is SegmentKind.STATIC
    assert classify("[postId]").kind is SegmentKind.DYNAMIC_SINGLE
    assert classify("[...slug]").kind is SegmentKind.DYNAMIC_CATCH_ALL
    assert classify("[[...slug]]").kind is SegmentKind.DYNAMIC_CATCH_ALL
    assert classify("(marketing)").kind is SegmentKind.ROUTE_GROUP
    assert classify("api").kind is SegmentKind.METHOD_COLLECTOR
    assert classify("API").kind is SegmentKind.METHOD_COLLECTOR


def test_dynamic_segments_key_by_parameter_name():
    assert classify("[postId]").key == "postId"
    assert classify("[...slug]").key == "slug"
    assert classify("posts").key == "posts"

    assert classify("[postId]").param_type == "string"
    assert classify("[...slug]").param_type == "string[]"
    assert classify("posts").param_type is None


def test_degenerate_brackets_are_static():
    assert classify("[]").kind is SegmentKind.STATIC
    assert classify("()").kind is SegmentKind.STATIC


def test_visible_segments_drop_groups_and_collectors():
    names = [s.name for s in visible_segments(("(shop)", "api", "products", "[id]"))]
    assert names == ["products", "[id]"]


def test_path_template_interpolates_parameters():
    assert path_template(()) == "`/`"
    assert path_template(("users",)) == "`/users`"
    assert path_template(("posts", "[postId]")) == "`/posts/${postId}`"
    assert path_template(("blog", "[...slug]")) == '`/blog/${slug.join("/")}`'
    assert path_template(("(marketing)", "contact")) == "`/contact`"
    assert path_template(("api", "users")) == "`/users`"


def test_route_path_is_readable():
    assert route_path(()) == "/"
    assert route_path(("posts", "[postId]")) == "/posts/[postId]"
    assert route_path(("(marketing)", "contact")) == "/contact"
