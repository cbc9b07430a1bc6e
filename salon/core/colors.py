"""Agent color names and legacy ANSI conversion."""

from typing import get_args

from .types import AgentColor

AGENT_COLORS: tuple[str, ...] = get_args(AgentColor)

# Older transcripts and configs stored raw ANSI escapes
ANSI_TO_AGENT_COLOR: dict[str, str] = {
    "\x1b[30m": "black",
    "\x1b[31m": "red",
    "\x1b[32m": "green",
    "\x1b[33m": "yellow",
    "\x1b[34m": "blue",
    "\x1b[35m": "magenta",
    "\x1b[36m": "cyan",
    "\x1b[37m": "white",
    "\x1b[90m": "gray",
    "\x1b[91m": "redBright",
    "\x1b[92m": "greenBright",
    "\x1b[93m": "yellowBright",
    "\x1b[94m": "blueBright",
    "\x1b[95m": "magentaBright",
    "\x1b[96m": "cyanBright",
    "\x1b[97m": "whiteBright",
}


def normalize_color(value: str) -> AgentColor:
    """Map an ANSI escape or a color name onto an AgentColor.

    Unknown values fall back to white.
    """
    if value in AGENT_COLORS:
        return value  # type: ignore[return-value]
    return ANSI_TO_AGENT_COLOR.get(value, "white")  # type: ignore[return-value]
