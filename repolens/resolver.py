"""Import specifier resolution and cross-file reference linking."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from .config import RESOLVE_EXTENSIONS

_TS_SWAPS = {".js": (".ts", ".tsx"), ".jsx": (".tsx",)}


def is_relative_specifier(specifier: str) -> bool:
    return specifier in (".", "..") or specifier.startswith(("./", "../"))


def resolve_specifier(specifier: str, importer: Union[str, Path]) -> Optional[Path]:
    """Map a relative import *specifier* to the file it designates.

    Only ``./`` and ``../`` specifiers are resolved; package names always
    return ``None``. Candidates are tried in a fixed order and the first
    existing file wins:

    1. the path exactly as written
    2. the path plus each extension in ``RESOLVE_EXTENSIONS``
    3. a ``.js`` -> ``.ts``/``.tsx`` swap (TypeScript ESM style imports)
    4. ``index`` plus each extension inside the directory
    """
    if not is_relative_specifier(specifier):
        return None

    base = os.path.normpath(os.path.join(os.path.dirname(str(importer)), specifier))

    if os.path.isfile(base):
        return Path(base)
    for ext in RESOLVE_EXTENSIONS:
        if os.path.isfile(base + ext):
            return Path(base + ext)

    stem, ext = os.path.splitext(base)
    for swapped in _TS_SWAPS.get(ext, ()):
        if os.path.isfile(stem + swapped):
            return Path(stem + swapped)

    if os.path.isdir(base):
        for ext in RESOLVE_EXTENSIONS:
            candidate = os.path.join(base, "index" + ext)
            if os.path.isfile(candidate):
                return Path(candidate)
    return None


def link_reference(
    ref: str,
    owner_file: str,
    exports_by_file: Mapping[str, Dict[str, str]],
) -> str:
    """Rewrite a cross-file ``<path>::<exported name>`` to the local name.

    ``export default foo`` and ``export { foo as bar }`` make the exported
    name differ from the declaration; this maps it back through the target
    file's export surface. Same-file and unknown-file references are
    returned unchanged.
    """
    path, sep, name = ref.rpartition("::")
    if not sep or path == owner_file:
        return ref
    exports = exports_by_file.get(path)
    if not exports:
        return ref
    head, dot, tail = name.partition(".")
    local = exports.get(head)
    if local is None:
        return ref
    return f"{path}::{local}{dot}{tail}"
