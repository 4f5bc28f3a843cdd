"""Helpers for importing generated Python modules."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import importlib.util
import itertools
from pathlib import Path
import sys
from types import ModuleType

_COUNTER = itertools.count(1)


@contextmanager
def loaded_module(module_path: Path, *, prefix: str = "generated") -> Iterator[ModuleType]:
    """Import a module from a file path for the duration of the block.

    The module is registered in ``sys.modules`` under a unique temporary name
    so forward references resolve, and unregistered on exit.

    Args:
        module_path (Path): File system path to the Python module.
        prefix (str): Prefix of the temporary import name.

    Yields:
        ModuleType: Imported Python module object.
    """
    if not module_path.is_file():
        raise RuntimeError(f"Generated module not found: {module_path}")

    module_name = f"_{prefix}_{module_path.stem}_{next(_COUNTER)}"
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Unable to import module from: {module_path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
        yield module
    finally:
        sys.modules.pop(module_name, None)
