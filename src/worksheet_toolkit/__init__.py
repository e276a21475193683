"""Top-level package for the worksheet authoring toolkit.

Provides subpackages:
- worksheet_toolkit.markup – token grammar, tokenizer, importer and serializer
- worksheet_toolkit.layout – block-to-column-to-page pagination
- worksheet_toolkit.history – snapshot undo/redo with typing coalescing
- worksheet_toolkit.typeset – math typesetting cache
- worksheet_toolkit.session – editing session tying the three together
"""

def _get_version() -> str:
    """Get version from pyproject.toml (dev) or importlib.metadata (installed)."""
    from pathlib import Path

    pyproject = Path(__file__).resolve().parent.parent.parent / "pyproject.toml"
    if pyproject.exists():
        try:
            content = pyproject.read_text(encoding="utf-8")
            for line in content.splitlines():
                if line.strip().startswith("version"):
                    # Parse: version = "0.3.0"
                    return line.split("=")[1].strip().strip('"').strip("'")
        except OSError:
            pass

    from importlib.metadata import PackageNotFoundError, version as pkg_version
    try:
        return pkg_version("worksheet-toolkit")
    except PackageNotFoundError:
        return "0.0.0"

__version__ = _get_version()
__all__: list[str] = ["__version__"]
