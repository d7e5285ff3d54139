"""Layer fingerprint derived from the declared dependency manifest."""

from __future__ import annotations

import base64
import hashlib
from typing import Mapping


def compute_layer_fingerprint(dependencies: Mapping[str, str]) -> str:
    """
    Return a stable fingerprint for a dependency mapping.

    Entries are concatenated as ``name + constraint`` in sorted key order, joined
    with commas, and digested with SHA-256. The digest is base64 encoded so it fits
    the layer version description field.
    """
    keys = [f"{name}{dependencies[name]}" for name in sorted(dependencies)]
    digest = hashlib.sha256(",".join(keys).encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")
