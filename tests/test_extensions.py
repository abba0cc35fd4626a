"""Extension loading tests."""

import textwrap

import pytest

from extensions import (
    ExtensionAPI,
    ExtensionError,
    RuntimeServices,
    load_runtime_services,
)
from interpreter import EvalError, Interpreter


def write_extension(path, body):
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


class TestExtensionAPI:

    def test_register_function(self):
        services = RuntimeServices()
        api = ExtensionAPI(services=services, ext_name="demo")
        api.register_function("twice", lambda args, context: args[0] * 2, doc="double")
        assert [(name, doc) for name, _handler, doc in services.functions] == [("twice", "double")]

    def test_function_decorator(self):
        services = RuntimeServices()
        api = ExtensionAPI(services=services, ext_name="demo")

        @api.function("hello")
        def hello(args, context):
            """Say hello"""
            return "hello"

        name, handler, doc = services.functions[0]
        assert (name, handler, doc) == ("hello", hello, "Say hello")

    def test_rejects_empty_name(self):
        api = ExtensionAPI(services=RuntimeServices(), ext_name="demo")
        with pytest.raises(ExtensionError):
            api.register_function("", lambda args, context: None)


class TestLoading:

    def test_bundled_strings_extension(self, ext_dir):
        services = load_runtime_services([str(ext_dir / "strings.py")])
        assert [meta.name for meta in services.metadata] == ["strings"]
        interpreter = Interpreter(services=services)
        assert interpreter.run('(upper, (concat, "ab", "c"))') == "ABC"
        assert interpreter.run('(lower, "MiXeD")') == "mixed"
        assert interpreter.run("(length, (array, 1, 2, 3))") == 3

    def test_bundled_extension_validates_arguments(self, ext_dir):
        interpreter = Interpreter(services=load_runtime_services([str(ext_dir / "strings.py")]))
        with pytest.raises(EvalError) as excinfo:
            interpreter.run("(upper, 1)")
        assert "string argument" in str(excinfo.value)

    def test_extension_functions_replace_builtins(self, tmp_path):
        path = write_extension(
            tmp_path / "override.py",
            """
            def sexp_lang_register(ext):
                ext.register_function("concat", lambda args, context: "-".join(args))
            """,
        )
        interpreter = Interpreter(services=load_runtime_services([str(path)]))
        assert interpreter.run('(concat, "a", "b", "c")') == "a-b-c"

    def test_later_extensions_replace_earlier_ones(self, tmp_path):
        first = write_extension(
            tmp_path / "first.py",
            """
            def sexp_lang_register(ext):
                ext.register_function("pick", lambda args, context: "first")
                ext.register_function("one", lambda args, context: 1)
            """,
        )
        second = write_extension(
            tmp_path / "second.py",
            """
            SEXP_LANG_EXTENSION_NAME = "later"

            def sexp_lang_register(ext):
                ext.metadata(name=ext.name)
                ext.register_function("PICK", lambda args, context: "second")
            """,
        )
        services = load_runtime_services([str(first), str(second)])
        assert [meta.name for meta in services.metadata] == ["later"]
        interpreter = Interpreter(services=services)
        assert interpreter.run("(array, (pick), (one))") == ["second", 1]

    def test_directory_is_not_an_extension(self, tmp_path):
        with pytest.raises(ExtensionError) as excinfo:
            load_runtime_services([str(tmp_path)])
        assert "Extension not found" in str(excinfo.value)

    def test_missing_extension(self, tmp_path):
        with pytest.raises(ExtensionError) as excinfo:
            load_runtime_services([str(tmp_path / "nope.py")])
        assert "Extension not found" in str(excinfo.value)

    def test_missing_register_hook(self, tmp_path):
        path = write_extension(tmp_path / "empty.py", "VALUE = 1\n")
        with pytest.raises(ExtensionError) as excinfo:
            load_runtime_services([str(path)])
        assert "sexp_lang_register" in str(excinfo.value)

    def test_api_version_mismatch(self, tmp_path):
        path = write_extension(
            tmp_path / "future.py",
            """
            SEXP_LANG_EXTENSION_API_VERSION = 2

            def sexp_lang_register(ext):
                pass
            """,
        )
        with pytest.raises(ExtensionError) as excinfo:
            load_runtime_services([str(path)])
        assert "requires API 2" in str(excinfo.value)
