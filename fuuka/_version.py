"""Package version, resolved from installed metadata or pyproject.toml."""
from __future__ import annotations

try:
    from importlib.metadata import version, PackageNotFoundError
    try:
        __version__: str = version("fuuka")
    except PackageNotFoundError:
        # Running from a source checkout without an install
        from pathlib import Path
        import re
        _pyproject = Path(__file__).parent.parent / "pyproject.toml"
        _match = re.search(r'^version\s*=\s*"([^"]+)"', _pyproject.read_text(), re.MULTILINE)
        __version__ = _match.group(1) if _match else "0.0.0"
except Exception:
    __version__ = "0.0.0"
