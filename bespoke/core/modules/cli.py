from __future__ import annotations

"""
CLI rendering helpers for `pkg list` / `pkg show`.
"""

from typing import Any, Dict, List


def modules_list_lines(*, module_manager: Any) -> List[str]:
    """
    Columns: identifier | enabled | version | metadata_url
    """
    lines = ["identifier | enabled | version | metadata_url"]
    for row in module_manager.list_modules():
        version = row.get("version") or "?"
        lines.append(f"{row['identifier']} | {str(bool(row.get('enabled'))).lower()} | {version} | {row.get('metadata_url', '')}")
    return lines


def modules_show_payload(*, module_manager: Any, identifier: str) -> Dict[str, Any]:
    return module_manager.show(str(identifier))


def batch_result_lines(results: List[Any]) -> List[str]:
    lines = []
    for r in results:
        if r.ok:
            lines.append(f"ok | {r.identifier} | {r.metadata_url}")
        else:
            err = r.error or {}
            lines.append(f"failed | {err.get('code', 'error')}: {err.get('user_message', '')} | {r.metadata_url}")
    return lines
