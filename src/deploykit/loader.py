"""Startup-time loading of string targets.

Descriptors may name their target as a string instead of an object. The
string is resolved once, when the descriptor is registered, never on the
resolution path.
"""

import importlib
import importlib.util
import os
from types import ModuleType
from typing import Any, Optional

from .exceptions import ModuleLoadError


def _import_file(file: str) -> ModuleType:
    name = os.path.splitext(os.path.basename(file))[0]
    spec = importlib.util.spec_from_file_location(f"deploykit_dynamic_{name}", file)
    if spec is None or spec.loader is None:
        raise ModuleLoadError(file)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def import_module(path: str) -> ModuleType:
    """Import a dotted module path or a ``.py`` file, wrapping failures."""
    try:
        if path.endswith(".py") or os.sep in path or "/" in path:
            return _import_file(path)
        return importlib.import_module(path)
    except ModuleLoadError:
        raise
    except Exception as e:
        raise ModuleLoadError(path, e) from e


def _pick(module: ModuleType, name: Optional[str], path: str) -> Any:
    if name and hasattr(module, name):
        return getattr(module, name)
    exported = getattr(module, "__all__", None)
    if exported:
        return getattr(module, exported[0])
    raise ModuleLoadError(path, AttributeError(f"module has no attribute '{name}'"))


def module_path_for(target: str, path: Optional[str] = None, file: Optional[str] = None) -> Optional[str]:
    if file:
        return file
    if path:
        if os.sep in path or "/" in path:
            return os.path.join(path, f"{target}.py")
        return f"{path}.{target}"
    return None


def load_target(target: str, path: Optional[str] = None, file: Optional[str] = None) -> Any:
    """Resolve a string target into the object it names.

    Accepted shapes, in order of precedence:

    * ``"package.module:Attr"``: entry-point style reference;
    * ``file`` set: the module at ``file``, attribute ``target``;
    * ``path`` set: the module ``path.target``, attribute ``target``.

    When the attribute named after the target is missing, the first name in
    the module's ``__all__`` is used.

    Raises:
        ModuleLoadError: If no module path can be derived or the import fails.
    """
    if ":" in target and not file and not path:
        mod_path, _, attr = target.partition(":")
        return _pick(import_module(mod_path), attr, target)

    mod_path = module_path_for(target, path, file)
    if not mod_path:
        raise ModuleLoadError(target, ValueError("a path or file is required to import a string target"))
    module = import_module(mod_path)
    attr = target.rsplit(".", 1)[-1].rsplit(":", 1)[-1]
    return _pick(module, attr, mod_path)
