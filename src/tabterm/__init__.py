"""
tabterm - Tabbed pty sessions for a single UI panel.

Runs several interactive CLI programs side by side, relays their I/O to a
UI over a WebSocket message protocol, and watches each tab's output for
interactive selection menus.
"""

__version__ = "0.1.0"
