"""
Bulb agent HTTP server

This package provides:
1. create_agent_server — binds a ThreadingHTTPServer serving a BulbStore
2. start_agent_server — same, serving from a daemon thread
3. render_status_page — HTML status page for a bulb snapshot
"""

from .http_server import (
    create_agent_server,
    render_status_page,
    start_agent_server,
)

__all__ = [
    'create_agent_server',
    'render_status_page',
    'start_agent_server',
]
