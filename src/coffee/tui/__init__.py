"""Terminal rendering for the coffee CLI."""

from .renderer import (
    console,
    show_list,
    show_readme,
    show_remote_inspect,
    show_remote_list,
    show_repair,
    show_report,
    show_search,
    show_tip,
    show_upgrade,
    spinner,
)

__all__ = [
    "console",
    "show_list",
    "show_readme",
    "show_remote_inspect",
    "show_remote_list",
    "show_repair",
    "show_report",
    "show_search",
    "show_tip",
    "show_upgrade",
    "spinner",
]
