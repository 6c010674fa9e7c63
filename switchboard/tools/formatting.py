"""
Rendering of tool results into a user-facing message.

ResultFormatter holds an ordered list of (predicate, renderer) pairs. The
first predicate that accepts a result wins; a generic renderer handles
everything else. The built-in pairs recognise paginated entity lists
(``data.<entity>`` collections) by tool name and render them with
TableFormatter.
"""

from __future__ import annotations

import json
from collections import Counter
from collections.abc import Callable
from typing import Any, Literal

Predicate = Callable[[str, Any], bool]
Renderer = Callable[[str, Any], str]

PAGINATION_KEYS = ("page", "per_page", "total_pages")


def _cell(value: Any) -> str:
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return str(value).replace("|", "\\|").replace("\n", " ")


def _label(key: str) -> str:
    return key.replace("_", " ").title()


class TableFormatter:
    """
    Markdown or plain-text tables with a title and a summary header.

    Args:
        style: "markdown" or "plain"
    """

    def __init__(self, style: Literal["markdown", "plain"] = "markdown"):
        self.style = style

    def format_table(
        self,
        rows: list[Any],
        title: str = "",
        summary: dict[str, Any] | None = None,
        headers: list[str] | None = None,
    ) -> str:
        if headers is None and rows and isinstance(rows[0], dict):
            headers = list(rows[0].keys())
        if self.style == "plain":
            return self._plain(rows, title, summary or {}, headers or [])
        return self._markdown(rows, title, summary or {}, headers or [])

    def _markdown(self, rows: list[Any], title: str, summary: dict[str, Any], headers: list[str]) -> str:
        lines: list[str] = []
        if title:
            lines += [f"### {title}", ""]
        if summary:
            lines += [f"**{_label(k)}:** {v}  " for k, v in summary.items()]
            lines.append("")
        if not rows:
            lines.append("No data available.")
            return "\n".join(lines)

        if headers:
            lines.append("| " + " | ".join(_label(h) for h in headers) + " |")
            lines.append("|" + "---|" * len(headers))
            for row in rows:
                lines.append("| " + " | ".join(_cell(row.get(h)) for h in headers) + " |")
        else:
            lines += [f"- {_cell(row)}" for row in rows]
        return "\n".join(lines)

    def _plain(self, rows: list[Any], title: str, summary: dict[str, Any], headers: list[str]) -> str:
        lines: list[str] = []
        if title:
            lines += [title, "=" * len(title), ""]
        if summary:
            lines += [f"{_label(k)}: {v}" for k, v in summary.items()]
            lines.append("")
        if not rows:
            lines.append("No data available.")
            return "\n".join(lines)

        if headers:
            cells = [[_cell(row.get(h)) for h in headers] for row in rows]
            widths = [
                max(len(_label(h)), *(len(r[i]) for r in cells))
                for i, h in enumerate(headers)
            ]
            lines.append("  ".join(_label(h).ljust(w) for h, w in zip(headers, widths)).rstrip())
            lines.append("  ".join("-" * w for w in widths))
            for r in cells:
                lines.append("  ".join(c.ljust(w) for c, w in zip(r, widths)).rstrip())
        else:
            lines += [f"- {_cell(row)}" for row in rows]
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Entity summaries
# ---------------------------------------------------------------------------

def _status_counts(items: list[dict], statuses: dict[str, str], other: bool = True) -> dict[str, int]:
    counts = Counter(item.get("status") for item in items)
    summary = {label: counts.get(status, 0) for label, status in statuses.items()}
    if other:
        summary["other"] = len(items) - sum(summary.values())
    return summary


def _summarize_plugins(items: list[dict]) -> dict[str, int]:
    active = sum(1 for p in items if p.get("active"))
    return {
        "active": active,
        "inactive": len(items) - active,
        "update_available": sum(1 for p in items if p.get("update_available")),
    }


def _summarize_posts(items: list[dict]) -> dict[str, int]:
    return _status_counts(items, {"published": "publish", "draft": "draft"})


def _summarize_comments(items: list[dict]) -> dict[str, int]:
    return _status_counts(items, {"approved": "approved", "pending": "pending", "spam": "spam"}, other=False)


def _summarize_users(items: list[dict]) -> dict[str, int]:
    roles: Counter[str] = Counter()
    for user in items:
        roles.update(user.get("roles") or [])
    return dict(roles)


def _summarize_memberships(items: list[dict]) -> dict[str, int]:
    return _status_counts(items, {"active": "active", "expired": "expired", "pending": "pending"})


def _summarize_levels(items: list[dict]) -> dict[str, int]:
    active = sum(1 for level in items if level.get("active"))
    return {"active": active, "inactive": len(items) - active}


# (tool-name marker, collection keys under data, title, summarizer)
ENTITY_TABLES: list[tuple[str, tuple[str, ...], str, Callable[[list[dict]], dict[str, int]]]] = [
    ("list_plugins", ("plugins",), "Installed Plugins", _summarize_plugins),
    ("list_posts", ("posts",), "Posts", _summarize_posts),
    ("list_pages", ("pages",), "Pages", _summarize_posts),
    ("list_comments", ("comments",), "Comments", _summarize_comments),
    ("list_users", ("users",), "Users", _summarize_users),
    ("list_membership_levels", ("levels", "membership_levels", "memberships"), "Membership Levels", _summarize_levels),
    ("list_memberships", ("memberships",), "Memberships", _summarize_memberships),
]


def _payload(result: Any) -> dict[str, Any] | None:
    if not isinstance(result, dict):
        return None
    data = result.get("data", result)
    return data if isinstance(data, dict) else None


def _collection(result: Any, keys: tuple[str, ...]) -> list[dict] | None:
    data = _payload(result)
    if data is None:
        return None
    for key in keys:
        items = data.get(key)
        if isinstance(items, list) and all(isinstance(i, dict) for i in items):
            return items
    return None


def entity_list_predicate(marker: str, keys: tuple[str, ...]) -> Predicate:
    def predicate(tool_name: str, result: Any) -> bool:
        return marker in tool_name and _collection(result, keys) is not None

    return predicate


def entity_list_renderer(
    keys: tuple[str, ...],
    title: str,
    summarize: Callable[[list[dict]], dict[str, int]],
    table: TableFormatter,
) -> Renderer:
    def render(tool_name: str, result: Any) -> str:
        items = _collection(result, keys) or []
        data = _payload(result) or {}
        pagination = data.get("pagination") if isinstance(data.get("pagination"), dict) else data

        summary: dict[str, Any] = {"total": data.get("total", len(items))}
        summary.update(summarize(items))
        for key in PAGINATION_KEYS:
            if pagination.get(key) is not None:
                summary[key] = pagination[key]
        return table.format_table(items, title=title, summary=summary)

    return render


def render_generic(tool_name: str, result: Any) -> str:
    """Message text when the result only carries one, otherwise a JSON block."""
    if isinstance(result, str):
        return result
    if isinstance(result, dict) and isinstance(result.get("message"), str) and "data" not in result:
        return result["message"]
    return "```json\n" + json.dumps(result, indent=2, default=str) + "\n```"


class ResultFormatter:
    """
    Ordered (predicate, renderer) registry.

    Args:
        table: Table formatter used by the built-in entity renderers
        include_defaults: Register the entity-list renderers
    """

    def __init__(self, table: TableFormatter | None = None, include_defaults: bool = True):
        self.table = table or TableFormatter()
        self._entries: list[tuple[Predicate, Renderer]] = []
        self.fallback: Renderer = render_generic
        if include_defaults:
            for marker, keys, title, summarize in ENTITY_TABLES:
                self.register(
                    entity_list_predicate(marker, keys),
                    entity_list_renderer(keys, title, summarize, self.table),
                )

    def register(self, predicate: Predicate, renderer: Renderer, first: bool = False) -> None:
        if first:
            self._entries.insert(0, (predicate, renderer))
        else:
            self._entries.append((predicate, renderer))

    def render(self, tool_name: str, result: Any) -> str:
        for predicate, renderer in self._entries:
            if predicate(tool_name, result):
                return renderer(tool_name, result)
        return self.fallback(tool_name, result)


def render_tool_results(results: list[dict[str, Any]], formatter: ResultFormatter | None = None) -> str:
    """
    Combine per-tool results into one message.

    Each entry is ``{"tool": name, "result": ...}`` or ``{"tool": name,
    "error": message}``; sections keep the order of ``results``.
    """
    formatter = formatter or ResultFormatter()
    sections = []
    for entry in results:
        tool = entry["tool"]
        if "error" in entry:
            body = f"Error: {entry['error']}"
        else:
            body = formatter.render(tool, entry.get("result"))
        sections.append(f"**{tool}**\n{body}")
    return "\n\n".join(sections)
