"""
Terminal rendering for the status dashboard.

`render_dashboard` is a pure function of DashboardViewState; the runner just
hands its result to rich.live.Live whenever the state changes.
"""

from typing import Optional

from rich import box
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from models.health import HealthSnapshot
from services.status_dashboard import (
    DashboardViewState,
    StatusColor,
    classify_freshness,
    classify_status,
    instance_color,
)

RICH_STYLES = {
    StatusColor.GREEN: "green",
    StatusColor.YELLOW: "yellow",
    StatusColor.RED: "red",
    StatusColor.GRAY: "grey50",
}


def _dot(color: StatusColor) -> Text:
    return Text("●", style=RICH_STYLES[color])


def _value(value) -> str:
    return "-" if value is None else str(value)


def format_duration(seconds: Optional[int]) -> str:
    """Compact duration, e.g. "2d 3h 14m"."""
    if seconds is None:
        return "-"
    days, rem = divmod(max(seconds, 0), 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def health_panel(health: Optional[HealthSnapshot]) -> Panel:
    table = Table(box=box.SIMPLE_HEAD, show_header=False, expand=True)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    if health is None:
        table.add_row("Status", Text("Loading...", style="grey50"))
        return Panel(table, title="Node Health")

    status_color = classify_status(health.status)
    table.add_row("Status", Text.assemble(_dot(status_color), " ", Text(health.status.upper(), style=RICH_STYLES[status_color])))
    table.add_row("Checked", health.timestamp)
    table.add_row("Instance", health.instance.id)
    table.add_row("Type", health.instance.type)
    table.add_row("Zone", f"{health.instance.availability_zone} ({health.instance.region})")
    table.add_row("Private IP", health.instance.private_ip)

    web = health.web_server
    if web is not None:
        state = f"{web.status}, {'responding' if web.responding else 'not responding'}"
        if web.version:
            state += f", v{web.version}"
        if web.uptime_seconds is not None:
            state += f", up {format_duration(web.uptime_seconds)}"
        table.add_row("Web server", state)

    for name, service in sorted(health.other_services.items()):
        table.add_row(name, f"{service.status}, {'responding' if service.responding else 'not responding'}")

    sync = health.content_sync
    seconds = sync.seconds_since_last_sync if sync is not None else None
    freshness = classify_freshness(seconds)
    table.add_row(
        "Last sync",
        Text.assemble(_dot(freshness.color), " ", Text(freshness.phrase, style=RICH_STYLES[freshness.color])),
    )

    if health.system is not None:
        table.add_row("Load", health.system.load_average)
        table.add_row("Memory", f"{_value(health.system.memory_used_percent)}%")
        table.add_row("Disk", health.system.disk_used)
        table.add_row("Uptime", format_duration(health.system.uptime_seconds))

    return Panel(table, title="Node Health", border_style=RICH_STYLES[status_color])


def served_by_panel(state: DashboardViewState) -> Panel:
    table = Table(box=box.SIMPLE_HEAD, show_header=False, expand=True)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    served_by = state.served_by
    if served_by is None:
        table.add_row("Instance", Text("Loading...", style="grey50"))
        return Panel(table, title="Served By")

    table.add_row("Instance", served_by.instance_id)
    table.add_row("Zone", f"{served_by.availability_zone} ({served_by.region})")
    table.add_row("Server", served_by.server)
    table.add_row("Served at", served_by.served_at)

    if state.server_info is not None:
        api = state.server_info.instance
        table.add_row("API instance", f"{api.id} ({api.type}, {api.availability_zone})")
        table.add_row("API time", state.server_info.timestamp)

    return Panel(table, title="Served By", border_style=instance_color(served_by.instance_id))


def render_dashboard(state: DashboardViewState) -> Group:
    """Build the full dashboard frame for a view state."""
    footer = Text(
        f"Refreshes: {state.refresh_count}  Last refresh: {state.last_refresh.strftime('%H:%M:%S')}"
        + ("  (loading)" if state.loading else ""),
        style="grey50",
    )
    return Group(health_panel(state.health), served_by_panel(state), footer)
