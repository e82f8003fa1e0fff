"""Fingerprint the installed plugins and the active template."""

from pathlib import Path
from typing import Dict, Iterable, Optional, Union

PathLike = Union[str, Path]

PLUGIN_INFO = "plugin.info.txt"
TEMPLATE_INFO = "template.info.txt"


def read_info_file(path: PathLike) -> Optional[Dict[str, str]]:
    """
    Read a ``*.info.txt`` file.

    The format is one ``key<whitespace>value`` pair per line; blank lines
    and lines starting with ``#`` are ignored.

    Returns:
        Parsed key/value pairs, or None if the file cannot be read
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None

    info = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split(None, 1)
        info[parts[0]] = parts[1].strip() if len(parts) > 1 else ""
    return info


def _version(info_path: Path) -> str:
    info = read_info_file(info_path)
    if info is None:
        return f"{info_path.name} unreadable"
    return info.get("date", "")


def collect_modules(
    plugin_dir: Optional[PathLike] = None,
    template_dir: Optional[PathLike] = None,
    template: Optional[str] = None,
    plugins: Optional[Iterable[str]] = None,
) -> Dict[str, str]:
    """
    Collect ``plugin.<name>`` and ``template.<name>`` module versions.

    The version is the ``date`` entry of the component's info file. When
    the info file is unreadable a diagnostic string is recorded instead.

    Args:
        plugin_dir: Directory holding one sub-directory per plugin
        template_dir: Directory holding the templates
        template: Name of the active template
        plugins: Enabled plugins; defaults to every sub-directory of plugin_dir

    Returns:
        Module name -> version mapping
    """
    modules: Dict[str, str] = {}

    if plugin_dir is not None:
        plugin_root = Path(plugin_dir)
        if plugins is None:
            plugins = sorted(p.name for p in plugin_root.iterdir() if p.is_dir()) if plugin_root.is_dir() else []
        for name in plugins:
            modules[f"plugin.{name}"] = _version(plugin_root / name / PLUGIN_INFO)

    if template_dir is not None and template:
        modules[f"template.{template}"] = _version(Path(template_dir) / template / TEMPLATE_INFO)

    return modules
