# bucketfs/__init__.py

"""
bucketfs package initialization.

Exposes the package version so the CLI and the health check can report it
(e.g. `from bucketfs import __version__`). The version comes from the
installed distribution metadata; a source checkout without metadata falls
back to the top-level `VERSION` file, then to a default.
"""

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

try:
	__version__ = version("bucketfs")
except PackageNotFoundError:
	_version_file = Path(__file__).resolve().parents[1] / "VERSION"
	if _version_file.exists():
		__version__ = _version_file.read_text(encoding="utf-8").strip()
	else:
		__version__ = "0.0.0"
