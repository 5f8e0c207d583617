#===============================================================================
#  Package Cockpit | fds.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-10-17
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Reader/writer for the subset of FreneticDataSyntax (.fds) that SwarmUI uses
#  for Data/Settings.fds and Data/Backends.fds:
#
#      # comment
#      key: value
#      section:
#      <TAB>child: value
#      list:
#      <TAB>- item
#
#  Values are kept as strings on read; writing formats bools as true/false.
#  '&' and newlines are escaped as '&&' and '&n'.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .exceptions import CockpitError

FdsValue = Union[str, bool, int, float, "FdsSection", List[str]]


class FdsError(CockpitError):
    """Raised on malformed .fds text"""
    pass


def _escape(text: str) -> str:
    return text.replace("&", "&&").replace("\n", "&n")


def _unescape(text: str) -> str:
    out: List[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "&" and i + 1 < len(text):
            nxt = text[i + 1]
            if nxt == "&":
                out.append("&")
                i += 2
                continue
            if nxt == "n":
                out.append("\n")
                i += 2
                continue
        out.append(ch)
        i += 1
    return "".join(out)


def _format(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class FdsSection:
    """Ordered key -> value mapping; values may be nested sections or string lists."""

    def __init__(self, data: Optional[Dict[str, FdsValue]] = None):
        self.data: Dict[str, FdsValue] = dict(data or {})

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, FdsSection) and self.data == other.data

    def __repr__(self) -> str:
        return f"FdsSection({self.data!r})"

    def items(self):
        return self.data.items()

    def _walk(self, path: str, create: bool) -> Tuple["FdsSection", str]:
        parts = path.split(".")
        section = self
        for part in parts[:-1]:
            child = section.data.get(part)
            if not isinstance(child, FdsSection):
                if not create:
                    raise KeyError(path)
                child = FdsSection()
                section.data[part] = child
            section = child
        return section, parts[-1]

    def get(self, path: str, default: Any = None) -> Any:
        """Dotted-path lookup, e.g. get('Paths.ModelRoot')."""
        try:
            section, key = self._walk(path, create=False)
        except KeyError:
            return default
        return section.data.get(key, default)

    def get_section(self, path: str) -> Optional["FdsSection"]:
        value = self.get(path)
        return value if isinstance(value, FdsSection) else None

    def get_bool(self, path: str, default: bool = False) -> bool:
        value = self.get(path)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() == "true"

    def set(self, path: str, value: FdsValue) -> None:
        section, key = self._walk(path, create=True)
        section.data[key] = value

    def remove(self, path: str) -> None:
        try:
            section, key = self._walk(path, create=False)
        except KeyError:
            return
        section.data.pop(key, None)

    def dumps(self, header: Optional[str] = None) -> str:
        lines: List[str] = []
        if header:
            lines.append(f"#{header}")
        self._emit(lines, 0)
        return "\n".join(lines) + "\n"

    def _emit(self, lines: List[str], depth: int) -> None:
        indent = "\t" * depth
        for key, value in self.data.items():
            if isinstance(value, FdsSection):
                lines.append(f"{indent}{key}:")
                value._emit(lines, depth + 1)
            elif isinstance(value, list):
                lines.append(f"{indent}{key}:")
                for item in value:
                    lines.append(f"{indent}\t- {_escape(_format(item))}")
            else:
                lines.append(f"{indent}{key}: {_escape(_format(value))}")

    def save_to_file(self, path: Path, header: Optional[str] = None) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.dumps(header), encoding="utf-8")


def loads(text: str) -> FdsSection:
    root = FdsSection()
    stack: List[Tuple[int, FdsSection]] = [(-1, root)]
    open_key: Optional[Tuple[FdsSection, str]] = None

    for lineno, raw in enumerate(text.splitlines(), start=1):
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue
        indent = len(raw) - len(raw.lstrip(" \t"))

        if stripped == "-" or stripped.startswith("- "):
            if open_key is None:
                raise FdsError(f"line {lineno}: list item without a key")
            parent, key = open_key
            current = parent.data.get(key)
            if not isinstance(current, list):
                # the empty section pushed for this key is not a section after all
                stale = current
                current = []
                parent.data[key] = current
                stack = [entry for entry in stack if entry[1] is not stale]
            current.append(_unescape(stripped[2:]))
            continue

        while len(stack) > 1 and indent <= stack[-1][0]:
            stack.pop()
        parent = stack[-1][1]

        key, sep, value = stripped.partition(":")
        if not sep:
            raise FdsError(f"line {lineno}: expected 'key: value', got {stripped!r}")
        key = key.strip()
        value = value.strip()
        if value:
            parent.data[key] = _unescape(value)
            open_key = None
        else:
            child = FdsSection()
            parent.data[key] = child
            stack.append((indent, child))
            open_key = (parent, key)

    return root


def read_file(path: Path) -> FdsSection:
    return loads(Path(path).read_text(encoding="utf-8"))
