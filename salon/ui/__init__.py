"""Terminal presentation for salon rooms."""

from .console import (
    AGENT_COLOR_STYLES,
    RoomRenderer,
    agent_style,
    render_header,
    render_message,
    render_presence,
)
from .report import render_simulation_report

__all__ = [
    "AGENT_COLOR_STYLES",
    "RoomRenderer",
    "agent_style",
    "render_header",
    "render_message",
    "render_presence",
    "render_simulation_report",
]
