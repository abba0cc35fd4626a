from __future__ import annotations

import importlib.util
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Sequence, Tuple

from lexer import SexpError


EXTENSION_API_VERSION = 1

# Extension functions use the same (arguments, context) shape as built-ins.
ExtensionFunction = Callable[[List[Any], Any], Any]


class ExtensionError(SexpError):
    pass


@dataclass(frozen=True)
class ExtensionMetadata:
    name: str
    version: str = "0.0.0"
    requires_api: int = EXTENSION_API_VERSION


@dataclass
class RuntimeServices:
    metadata: List[ExtensionMetadata] = field(default_factory=list)
    # functions are registered into the interpreter's registry at construction
    functions: List[Tuple[str, ExtensionFunction, str]] = field(default_factory=list)


class ExtensionAPI:
    def __init__(self, *, services: RuntimeServices, ext_name: str) -> None:
        self._services = services
        self._ext_name = ext_name

    @property
    def name(self) -> str:
        return self._ext_name

    # ---- metadata ----
    def metadata(self, *, name: str, version: str = "0.0.0", requires_api: int = EXTENSION_API_VERSION) -> None:
        self._services.metadata.append(ExtensionMetadata(name=name, version=version, requires_api=requires_api))

    # ---- functions ----
    def register_function(self, name: str, handler: ExtensionFunction, *, doc: str = "") -> None:
        if not name:
            raise ExtensionError("Function name must be non-empty")
        if not callable(handler):
            raise ExtensionError(f"Handler for '{name}' is not callable")
        self._services.functions.append((name, handler, doc))

    def function(self, name: str, *, doc: str = ""):
        def deco(fn: ExtensionFunction) -> ExtensionFunction:
            self.register_function(name, fn, doc=doc or (fn.__doc__ or "").strip())
            return fn

        return deco


def load_extension_module(path: Path) -> Any:
    if not path.is_file():
        raise ExtensionError(f"Extension not found: {path}")
    spec = importlib.util.spec_from_file_location(f"sexp_ext_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise ExtensionError(f"Failed to load extension module: {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)  # type: ignore[union-attr]
    return module


def _register_extension(module: Any, path: Path, services: RuntimeServices) -> None:
    api_version = getattr(module, "SEXP_LANG_EXTENSION_API_VERSION", EXTENSION_API_VERSION)
    if api_version != EXTENSION_API_VERSION:
        raise ExtensionError(
            f"Extension {path} requires API {api_version}, host supports {EXTENSION_API_VERSION}"
        )
    register = getattr(module, "sexp_lang_register", None)
    if not callable(register):
        raise ExtensionError(f"Extension {path} must define callable sexp_lang_register(ext)")
    ext_name = str(getattr(module, "SEXP_LANG_EXTENSION_NAME", path.stem))
    register(ExtensionAPI(services=services, ext_name=ext_name))


def load_runtime_services(paths: Sequence[str]) -> RuntimeServices:
    """Load each extension file in order and collect the functions it registers."""
    services = RuntimeServices()
    for raw in paths:
        path = Path(raw).resolve()
        _register_extension(load_extension_module(path), path, services)
    return services
