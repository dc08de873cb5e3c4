# logger.py
from datetime import datetime
from rich.console import Console
from rich.markup import escape

# Shared Console Instance
console = Console()

_ENABLED = True

def set_logging(enabled):
    """Mutes or un-mutes all console output (used while tests or shutdown run)."""
    global _ENABLED
    _ENABLED = bool(enabled)

def _timestamp():
    """Returns the current time formatted for the log."""
    return f"[dim]{datetime.now().strftime('%H:%M:%S')}[/dim]"

def _emit(line):
    if _ENABLED:
        console.print(line)

def info(source, message, style="cyan"):
    """
    Standard System Event Log.
    Automatically escapes brackets so errors like '[Errno 2]' don't break Rich.
    """
    safe_message = escape(str(message))
    tag_color = f"bold {style}"
    _emit(f"{_timestamp()} [{tag_color}]{escape(str(source)):<10}[/{tag_color}] {safe_message}")

def warn(source, message):
    """Warning Log."""
    safe_message = escape(str(message))
    _emit(f"{_timestamp()} [bold yellow]{escape(str(source)):<10}[/bold yellow] {safe_message}")

def error(source, message):
    """Error Log."""
    safe_message = escape(str(message))
    _emit(f"{_timestamp()} [bold red]{escape(str(source)):<10}[/bold red] {safe_message}")

def telemetry(topic, payload, retain=False):
    """
    Formatted publish log: one line per outgoing MQTT message.
    """
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    if payload:
        display_val = f"[bold white]{escape(str(payload))}[/bold white]"
    else:
        display_val = "[dim]<empty>[/dim]"
    retain_tag = " [dim](retained)[/dim]" if retain else ""

    _emit(
        f"{_timestamp()} [bold deep_sky_blue1]{escape(str(topic)):<30}[/bold deep_sky_blue1] "
        f": {display_val}{retain_tag}"
    )
