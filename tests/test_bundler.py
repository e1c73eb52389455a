"""
Tests for the module bundler.

These tests verify:
    - require detection in its three syntactic forms
    - module lookup in the project and in libraries
    - each module embedded once, in a stable order
    - host-provided modules left alone
"""

import pytest

from luabuild.errors import BuildEntryNotFound, LuaSyntaxError, ModuleNotFound
from luabuild.lua.bundler import ModuleBundler, find_requires
from luabuild.lua.lexer import tokenize
from luabuild.manifest import load_project
from luabuild.resolver import LibraryResolver


def bundler_for(manifest, tmp_path):
    project = load_project(manifest)
    resolver = LibraryResolver(base_directory=project.directory)
    resolver.resolve_project(project)
    return ModuleBundler(project, resolver.context.libraries)


class TestFindRequires:
    """Detecting literal require calls."""

    def test_three_forms(self):
        source = 'require "a"\nrequire \'b\'\nrequire("c")\nrequire ( "d" )'
        assert find_requires(tokenize(source)) == ["a", "b", "c", "d"]

    def test_long_string_argument(self):
        assert find_requires(tokenize("require [[a.b]]")) == ["a.b"]

    def test_ignores_method_calls_and_dynamic_names(self):
        source = 'obj.require("x")\nobj:require("y")\nrequire(name)\nlocal require_me = 1'
        assert find_requires(tokenize(source)) == []

    def test_ignores_comments_and_strings(self):
        source = '-- require("x")\nprint("require(\'y\')")'
        assert find_requires(tokenize(source)) == []


class TestBundling:
    """Combining sources."""

    def test_entry_without_requires(self, tmp_path, make_project):
        manifest = make_project(builds={"main": {}}, sources={"main.lua": "print('hi')\n"})
        result = bundler_for(manifest, tmp_path).compile("main")
        assert result.output == "print('hi')\n"
        assert result.modules == []
        assert "".join(t.text for t in result.tokens) == result.output

    def test_missing_entry(self, tmp_path, make_project):
        manifest = make_project(builds={"main": {}})
        with pytest.raises(BuildEntryNotFound) as excinfo:
            bundler_for(manifest, tmp_path).compile("main")
        assert excinfo.value.path.name == "main.lua"

    def test_project_module_embedded(self, tmp_path, make_project):
        manifest = make_project(sources={
            "main.lua": 'local util = require("helpers.util")\nprint(util.x)\n',
            "helpers/util.lua": "return { x = 1 }\n",
        })
        result = bundler_for(manifest, tmp_path).compile("main")
        assert result.output == (
            'package.preload["helpers.util"] = function (...)\n'
            "return { x = 1 }\n"
            "end\n"
            'local util = require("helpers.util")\nprint(util.x)\n'
        )
        assert result.modules == ["helpers.util"]

    def test_init_lua_package(self, tmp_path, make_project):
        manifest = make_project(sources={
            "main.lua": 'require "pkg"',
            "pkg/init.lua": "return 1",
        })
        result = bundler_for(manifest, tmp_path).compile("main")
        assert result.modules == ["pkg"]

    def test_library_module(self, tmp_path, make_project, make_library):
        make_library("core", sources={"text/format.lua": "return string.format"})
        manifest = make_project(
            directory=tmp_path,
            libs={"core": {"id": "core", "path": "libs/core"}},
            sources={"main.lua": 'local fmt = require("core:text.format")'},
        )
        result = bundler_for(manifest, tmp_path).compile("main")
        assert result.modules == ["core:text.format"]
        assert 'package.preload["core:text.format"]' in result.output
        assert "return string.format" in result.output

    def test_library_internal_require_uses_library_root(self, tmp_path, make_project, make_library):
        make_library("core", sources={
            "api.lua": 'return require("shared")',
            "shared.lua": "return 'core shared'",
        })
        manifest = make_project(
            directory=tmp_path,
            libs=[{"id": "core", "path": "libs/core"}],
            sources={
                "main.lua": 'require("core:api")',
                "shared.lua": "return 'project shared'",
            },
        )
        result = bundler_for(manifest, tmp_path).compile("main")
        assert result.modules == ["core:api", "shared"]
        assert "core shared" in result.output
        assert "project shared" not in result.output

    def test_shared_module_embedded_once(self, tmp_path, make_project):
        manifest = make_project(sources={
            "main.lua": 'require("a")\nrequire("b")\nrequire("a")',
            "a.lua": 'return require("common")',
            "b.lua": 'return require("common")',
            "common.lua": "return {}",
        })
        result = bundler_for(manifest, tmp_path).compile("main")
        assert result.modules == ["a", "common", "b"]
        assert result.output.count('package.preload["common"]') == 1

    def test_mutual_requires_terminate(self, tmp_path, make_project):
        manifest = make_project(sources={
            "main.lua": 'require("ping")',
            "ping.lua": 'return require("pong")',
            "pong.lua": 'return require("ping")',
        })
        result = bundler_for(manifest, tmp_path).compile("main")
        assert result.modules == ["ping", "pong"]

    def test_host_module_left_alone(self, tmp_path, make_project):
        manifest = make_project(sources={"main.lua": 'local json = require("dkjson")'})
        result = bundler_for(manifest, tmp_path).compile("main")
        assert result.modules == []
        assert result.output == 'local json = require("dkjson")\n'

    def test_unknown_library_prefix(self, tmp_path, make_project):
        manifest = make_project(sources={"main.lua": 'require("nolib:thing")'})
        with pytest.raises(ModuleNotFound) as excinfo:
            bundler_for(manifest, tmp_path).compile("main")
        assert excinfo.value.library_id == "nolib"

    def test_missing_library_module(self, tmp_path, make_project, make_library):
        make_library("core")
        manifest = make_project(
            directory=tmp_path,
            libs=[{"id": "core", "path": "libs/core"}],
            sources={"main.lua": 'require("core:absent")'},
        )
        with pytest.raises(ModuleNotFound):
            bundler_for(manifest, tmp_path).compile("main")

    def test_shebang_stripped(self, tmp_path, make_project):
        manifest = make_project(sources={"main.lua": "#!/usr/bin/env lua\nprint(1)\n"})
        result = bundler_for(manifest, tmp_path).compile("main")
        assert result.output == "print(1)\n"

    def test_byte_order_mark_stripped_from_modules(self, tmp_path, make_project):
        manifest = make_project(sources={"main.lua": 'require("util")\n'})
        (tmp_path / "demo" / "src" / "util.lua").write_bytes(b"\xef\xbb\xbfreturn 1\n")
        result = bundler_for(manifest, tmp_path).compile("main")
        assert result.output == 'package.preload["util"] = function (...)\nreturn 1\nend\nrequire("util")\n'

    def test_non_utf8_source_kept_as_is(self, tmp_path, make_project):
        manifest = make_project(sources={"main.lua": ""})
        (tmp_path / "demo" / "src" / "main.lua").write_bytes(b'print("caf\xe9")\r\n')
        result = bundler_for(manifest, tmp_path).compile("main")
        assert result.output.encode("latin-1") == b'print("caf\xe9")\r\n'

    def test_same_bare_name_in_two_libraries_warns(self, tmp_path, make_project, make_library, caplog):
        make_library("a", sources={"x.lua": 'return require("util")', "util.lua": "return 'a'"})
        make_library("b", sources={"y.lua": 'return require("util")', "util.lua": "return 'b'"})
        manifest = make_project(
            directory=tmp_path,
            libs=[{"id": "a", "path": "libs/a"}, {"id": "b", "path": "libs/b"}],
            sources={"main.lua": 'require("a:x")\nrequire("b:y")'},
        )
        result = bundler_for(manifest, tmp_path).compile("main")
        assert result.modules == ["a:x", "util", "b:y"]
        assert "return 'b'" not in result.output
        assert 'Module "util"' in caplog.text
        assert "already embedded" in caplog.text

    def test_same_file_required_twice_does_not_warn(self, tmp_path, make_project, caplog):
        manifest = make_project(sources={
            "main.lua": 'require("a")\nrequire("a")',
            "a.lua": "return 1",
        })
        bundler_for(manifest, tmp_path).compile("main")
        assert "already embedded" not in caplog.text

    def test_syntax_error_names_file(self, tmp_path, make_project):
        manifest = make_project(sources={"main.lua": 'print("oops'})
        with pytest.raises(LuaSyntaxError) as excinfo:
            bundler_for(manifest, tmp_path).compile("main")
        assert "main.lua" in str(excinfo.value)

    def test_deterministic_output(self, tmp_path, make_project):
        manifest = make_project(sources={
            "main.lua": 'require("b")\nrequire("a")',
            "a.lua": "return 'a'",
            "b.lua": "return 'b'",
        })
        first = bundler_for(manifest, tmp_path).compile("main")
        second = bundler_for(manifest, tmp_path).compile("main")
        assert first.output == second.output
