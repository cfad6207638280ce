from pathlib import Path

from routesdk.codegen.imports import (
    aggregate,
    combine_imports,
    dealias,
    filter_used,
    format_import,
    rebase_specifier,
)
from routesdk.domain.models import ImportSpec, NamedImport
from routesdk.graph.model import RouteNode


def spec(module: str, *names: str, **kw) -> ImportSpec:
    return ImportSpec(module_specifier=module, named_imports=[NamedImport(name=n) for n in names], **kw)


def test_rebase_relative_specifier_onto_output_dir(tmp_path: Path):
    origin = tmp_path / "app" / "users"
    target = tmp_path / "api"
    assert rebase_specifier("../../lib/db", origin, target) == "../lib/db"
    assert rebase_specifier("./schema", origin, target) == "../app/users/schema"
    # bare module specifiers are left alone
    assert rebase_specifier("zod", origin, target) == "zod"
    assert rebase_specifier("../x", None, target) == "../x"


def test_aggregate_merges_per_module(tmp_path: Path):
    users = RouteNode(
        segment="users",
        imports=(spec("next/server", "NextResponse"), spec("zod", "z")),
    )
    posts = RouteNode(
        segment="posts",
        imports=(spec("next/server", "NextRequest", "NextResponse"),),
    )
    tree = RouteNode(segment="app").with_child("posts", posts).with_child("users", users)

    merged = aggregate(tree)
    assert [s.module_specifier for s in merged] == ["next/server", "zod"]
    assert [n.name for n in merged[0].named_imports] == ["NextRequest", "NextResponse"]


def test_aggregate_rebases_relative_imports_before_merging(tmp_path: Path):
    a = RouteNode(segment="a", imports=(spec("../lib/db", "db", origin_dir=tmp_path / "app" / "a"),))
    b = RouteNode(segment="b", imports=(spec("../../lib/db", "db", origin_dir=tmp_path / "app" / "b" / "c"),))
    tree = RouteNode(segment="app").with_child("a", a).with_child("b", b)

    merged = aggregate(tree, relative_to=tmp_path / "api")
    assert len(merged) == 1
    assert merged[0].module_specifier == "../app/lib/db"
    assert [n.name for n in merged[0].named_imports] == ["db"]


def test_conflicting_default_imports_become_named_default():
    merged = combine_imports(
        [
            ImportSpec(module_specifier="lib", default_import="A"),
            ImportSpec(module_specifier="lib", default_import="B"),
        ]
    )
    assert format_import(merged[0]) == "import A, { default as B } from 'lib';"


def test_type_only_flag_survives_only_when_every_import_is_type_only():
    merged = combine_imports(
        [
            spec("./types", "User", is_type_only=True),
            spec("./types", "Post"),
        ]
    )
    assert merged[0].is_type_only is False
    assert format_import(merged[0]) == "import { User, Post } from './types';"


def test_filter_used_matches_whole_identifiers():
    specs = [spec("a", "Foo"), spec("b", "Bar"), ImportSpec(module_specifier="c", namespace_import="utils")]
    used = filter_used(specs, ["const x = FooBar + Bar;\nutils.go();"])
    assert [s.module_specifier for s in used] == ["b", "c"]


def test_dealias_suffixes_repeated_identifiers():
    specs = [spec("a", "Foo"), spec("b", "Foo"), spec("c", "Foo")]
    dealias(specs)
    assert [format_import(s) for s in specs] == [
        "import { Foo } from 'a';",
        "import { Foo as Foo_1 } from 'b';",
        "import { Foo as Foo_2 } from 'c';",
    ]


def test_format_import_shapes():
    assert format_import(ImportSpec(module_specifier="react", default_import="React")) == "import React from 'react';"
    assert (
        format_import(ImportSpec(module_specifier="./t", named_imports=[NamedImport(name="T")], is_type_only=True))
        == "import type { T } from './t';"
    )
    ns = ImportSpec(module_specifier="m", default_import="d", namespace_import="ns", named_imports=[NamedImport(name="x")])
    assert format_import(ns) == "import d, * as ns from 'm';\nimport { x } from 'm';"
