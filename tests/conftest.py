"""
Pytest config.

Local imports like `import tobac` rely on the repo root being on sys.path. When invoking
a global `pytest` entrypoint that doesn't happen reliably during collection, so we pin it.
"""

from __future__ import annotations

import sys
from pathlib import Path


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()
