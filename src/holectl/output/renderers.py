"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO).  The caller
extracts the rendered text via ``get_output(console)``.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.markup import escape
from rich.table import Table
from rich.text import Text

from holectl.output.console import create_console, get_output, style_for_severity

if TYPE_CHECKING:
    from rich.console import Console

    from holectl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
        if verbose:
            _render_meta(console, result)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    if result.op == "check":
        lines = [
            f"{i['severity']} {i.get('subject') or i['category']}: {i['message']}"
            for i in result.data.get("issues", [])
            if i["severity"] == "error"
        ]
        return "\n".join(lines) or "OK: check"
    if result.op == "route_resolve":
        return str(result.data.get("target") or result.data.get("kind"))
    if result.op == "acl_test":
        return "allow" if result.data.get("allowed") else "deny"

    items = result.data.get("items") or result.data.get("containers")
    if items and isinstance(items, list):
        return "\n".join(_extract_key(item) for item in items if _extract_key(item))

    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _extract_key(item: Any) -> str:
    """Pick the identifying value of a list item (route target, service name)."""
    if isinstance(item, dict):
        for key in ("service", "target", "server"):
            val = item.get(key)
            if val is not None:
                return str(val)
    return ""


def _status_line(console: Console, result: ServiceResult) -> None:
    label = Text("OK", style="hole.ok")
    op = Text(f"  {result.op}", style="hole.op")
    console.print(label, op, end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="hole.key")
    if key in ("path", "root"):
        v = Text(str(value), style="hole.path")
    elif key in ("masked", "auth_key"):
        v = Text(str(value), style="hole.secret")
    elif isinstance(value, (dict, list)):
        v = Text(_json.dumps(value, separators=(",", ":")))
    else:
        v = Text(str(value))
    console.print(Text.assemble(k, v))


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print meta block including the telemetry span tree."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_telemetry_tree(console: Console, span_data: dict[str, Any], indent: int = 4) -> None:
    prefix = " " * indent
    name = span_data.get("name", "?")
    duration = span_data.get("duration_ms", 0.0)

    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    line = f"{prefix}[{style}]{duration:>8.2f}ms[/{style}]  {name}"
    annotations = span_data.get("annotations")
    if annotations:
        line += "  (" + ", ".join(f"{k}={v}" for k, v in annotations.items()) + ")"
    console.print(line)

    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


def _verdict(passed: bool, yes: str = "pass", no: str = "FAIL") -> Text:
    return Text(yes, style="hole.allow") if passed else Text(no, style="hole.deny")


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    console.print(Text.assemble(("ERROR", "hole.error"), (f"  {result.op}", "hole.op"), ": ", msg))
    if err is None:
        return

    detail = err.detail
    # These details are the actual answer to the command, not debug info.
    if "checks" in detail:
        _reply_table(console, detail["checks"])
    if "failures" in detail:
        for failure in detail["failures"]:
            console.print(
                f"  [hole.deny]expected {failure['expected']}[/hole.deny]"
                f"  {failure['src']} -> {failure['dst']}  (tests[{failure['test']}])"
                + (f"  {failure['reason']}" if failure.get("reason") else "")
            )
    if detail.get("stderr"):
        console.print(Text(detail["stderr"], style="dim"))
    if "files" in detail:
        for name in detail["files"]:
            console.print(f"    {name}", style="hole.path")

    if verbose:
        shown = {"checks", "failures", "stderr", "files"}
        rest = {k: v for k, v in detail.items() if k not in shown}
        if rest:
            console.print(Text("  detail:", style="dim"))
            for k, v in rest.items():
                console.print(f"    {k}: {v}")


# ── Check ─────────────────────────────────────────────────────────────


def _render_check(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render check results with issues grouped by category."""
    issues = result.data.get("issues", [])
    if not issues:
        console.print("[hole.ok]OK[/hole.ok]  No issues found.")
        return

    by_category: dict[str, list[dict[str, Any]]] = {}
    for issue in issues:
        by_category.setdefault(str(issue.get("category", "unknown")), []).append(issue)

    for cat, cat_issues in by_category.items():
        console.print(f"\n[bold]{cat}[/bold]")
        for issue in cat_issues:
            sev = str(issue.get("severity", "warning"))
            style = style_for_severity(sev)
            prefix = f"[{style}]{sev}[/{style}]" if style else sev
            subject = issue.get("subject")
            where = f" \\[{escape(str(subject))}]" if subject else ""
            console.print(f"  {prefix}{where}: {escape(str(issue.get('message', '')))}")

    errors = result.data.get("error_count", 0)
    warnings = result.data.get("warning_count", 0)
    if result.data.get("healthy"):
        verdict = "[hole.ok]healthy[/hole.ok]"
    else:
        verdict = "[hole.error]unhealthy[/hole.error]"
    console.print(f"\n{errors} errors, {warnings} warnings: {verdict}")


# ── Init / secrets ────────────────────────────────────────────────────


def _render_init(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    for key in ("root", "hostname", "tag", "auth_key"):
        if key in d:
            _field(console, key, d[key])
    files = d.get("files", [])
    _field(console, "files_written", len(files))
    for name in files:
        console.print(f"    {name}", style="hole.path")
    console.print("\nNext: paste policy.json into the admin console, then run `holectl up`.")


def _render_secret_set(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    _field(console, "path", result.data.get("path"))
    _field(console, "masked", result.data.get("masked"))


def _render_secret_status(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    d = result.data
    _status_line(console, result)
    _field(console, "path", d.get("path"))
    _field(console, "exists", d.get("exists"))
    if d.get("exists"):
        _field(console, "mode", d.get("mode"))
        _field(console, "masked", d.get("masked"))
    for issue in d.get("issues", []):
        sev = str(issue.get("severity"))
        style = style_for_severity(sev)
        console.print(f"  [{style}]{sev}[/{style}]: {issue.get('message')}")


# ── Plan ──────────────────────────────────────────────────────────────


def _render_plan(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Start waves in order; stop order is the reverse."""
    d = result.data
    console.print("[bold]start order[/bold]")
    for index, wave in enumerate(d.get("start", []), start=1):
        names = ", ".join(f"[hole.service]{n}[/hole.service]" for n in wave)
        console.print(f"  {index}. {names}")
    console.print("[bold]stop order[/bold]")
    for index, wave in enumerate(d.get("stop", []), start=1):
        console.print(f"  {index}. {', '.join(wave)}")
    if verbose:
        console.print("[bold]edges[/bold]")
        for edge in d.get("edges", []):
            console.print(f"  {edge['from']} -> {edge['to']}  ({edge['condition']})")


# ── Policy ────────────────────────────────────────────────────────────


def _render_acl_test(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    verdict = _verdict(bool(d.get("allowed")), "ALLOW", "DENY")
    rules = d.get("rules") or []
    via = f"  (acls[{', '.join(str(r) for r in rules)}])" if rules else "  (no rule matches)"
    line = f"  {d.get('src')} -> {d.get('dst')}:{d.get('port')}{via}"
    console.print(Text.assemble(verdict, line))
    checks = d.get("checks", [])
    if verbose or len(checks) > 1:
        for check in checks:
            mark = "allow" if check["allowed"] else "deny"
            console.print(f"    {check['src']} -> {check['dst']}: {mark}")


def _render_policy_tests(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    d = result.data
    _status_line(console, result)
    _field(console, "tests", d.get("tests", 0))
    _field(console, "assertions", d.get("assertions", 0))


def _render_acl_show(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    for group, members in d.get("groups", {}).items():
        console.print(f"[bold]{group}[/bold]: {', '.join(members) or '-'}")
    for tag, owners in d.get("tag_owners", {}).items():
        console.print(f"[bold]{tag}[/bold] owned by {', '.join(owners) or '-'}")

    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("#", justify="right")
    table.add_column("Action")
    table.add_column("Source")
    table.add_column("Destination")
    for rule in d.get("rules", []):
        table.add_row(
            str(rule["index"]), rule["action"], ", ".join(rule["src"]), ", ".join(rule["dst"])
        )
    console.print(table)
    console.print(f"\n{len(d.get('rules', []))} rules, {d.get('tests', 0)} tests")


# ── Routes ────────────────────────────────────────────────────────────


def _render_route_resolve(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    d = result.data
    tls = "https" if d.get("tls") else "http"
    target = d.get("target") or f"<{d.get('kind')}>"
    console.print(
        Text.assemble(
            (f"{d.get('host')}:{d.get('port')}{d.get('path')}", "bold"),
            f"  -> {target}",
        )
    )
    _field(console, "server", d.get("server"))
    _field(console, "mount", d.get("mount"))
    _field(console, "listener", tls)
    if d.get("funnel"):
        _field(console, "funnel", "public")


def _render_routes(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    items = result.data.get("items", [])
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Server", no_wrap=True)
    table.add_column("Mount")
    table.add_column("Kind")
    table.add_column("Target")
    table.add_column("TLS")
    table.add_column("Funnel")
    for route in items:
        table.add_row(
            route["server"],
            route["mount"],
            route["kind"],
            str(route.get("target") or ""),
            "yes" if route["tls"] else "no",
            "yes" if route["funnel"] else "no",
        )
    console.print(table)
    console.print(f"\n{result.data.get('count', len(items))} routes")


# ── Compose pass-through ──────────────────────────────────────────────


def _render_compose(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    _status_line(console, result)
    argv = " ".join(d.get("argv", []))
    if d.get("dry_run"):
        console.print(f"  would run: {argv}")
        return
    if verbose:
        _field(console, "command", argv)
    output = str(d.get("output", "")).strip()
    if output:
        console.print(Text(output))


def _render_ps(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    if "containers" not in d:
        _render_compose(result, console, verbose=verbose)
        return
    containers = d["containers"]
    if not containers:
        console.print("No containers running.")
        return
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Service", style="hole.service", no_wrap=True)
    table.add_column("Container")
    table.add_column("State")
    table.add_column("Status")
    for row in containers:
        state = str(row.get("state") or "")
        styled = Text(state, style="hole.allow" if state == "running" else "hole.warning")
        table.add_row(
            str(row.get("service") or ""),
            str(row.get("name") or ""),
            styled,
            str(row.get("status") or ""),
        )
    console.print(table)


# ── Verify ────────────────────────────────────────────────────────────


def _reply_table(console: Console, checks: list[dict[str, Any]]) -> None:
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Domain", no_wrap=True)
    table.add_column("Type")
    table.add_column("Expect")
    table.add_column("Answer")
    table.add_column("Result")
    for check in checks:
        answer = ", ".join(check.get("addresses") or []) or check.get("status", "")
        table.add_row(
            check["domain"],
            check["rtype"],
            check["expect"],
            answer,
            _verdict(bool(check["passed"])),
        )
    console.print(table)
    for check in checks:
        if not check["passed"]:
            console.print(f"  {check['domain']} {check['rtype']}: {check['reason']}")


def _render_verify(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    _field(console, "resolver", result.data.get("resolver"))
    _reply_table(console, result.data.get("checks", []))


# ── Fallback ──────────────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    "check": _render_check,
    "init": _render_init,
    "plan": _render_plan,
    # Policy
    "acl_test": _render_acl_test,
    "policy_tests": _render_policy_tests,
    "acl_show": _render_acl_show,
    # Routes
    "route_resolve": _render_route_resolve,
    "routes": _render_routes,
    # Secrets
    "secret_set": _render_secret_set,
    "secret_status": _render_secret_status,
    # Compose
    "up": _render_compose,
    "down": _render_compose,
    "ps": _render_ps,
    "verify": _render_verify,
}
