"""DotDict - dict with attribute access for tool handles and gate results.

Instances returned by toolsign (tool handles, gate responses, verified
requests) are plain dicts so they serialize and compare like dicts, but
also read naturally:
    tool = tools["weather"]
    tool.description  # same as tool["description"]
    await tool.execute({"city": "Oslo"})
"""

from __future__ import annotations

from typing import Any


def _wrap(value: Any) -> Any:
    if isinstance(value, dict) and not isinstance(value, DotDict):
        return DotDict(value)
    return value


class DotDict(dict):
    """Dict that exposes its keys as attributes."""

    def __getattr__(self, key: str) -> Any:
        try:
            value = self[key]
        except KeyError:
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{key}'")
        wrapped = _wrap(value)
        if wrapped is not value:
            self[key] = wrapped
        return wrapped

    def __setattr__(self, key: str, value: Any) -> None:
        self[key] = value

    def __delattr__(self, key: str) -> None:
        try:
            del self[key]
        except KeyError:
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{key}'")

    def copy(self) -> DotDict:
        return type(self)(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({super().__repr__()})"
