# Managers module exports
from managers.command_dispatcher import CommandDispatcher, DispatchResult
from managers.daemon_signal import WakeChannel, notify_daemon
from managers.status_publisher import StatusPublisher, publish_status, render_status, status_once

__all__ = [
    # Command dispatcher
    "CommandDispatcher",
    "DispatchResult",
    # Wake channel
    "WakeChannel",
    "notify_daemon",
    # Status publisher
    "StatusPublisher",
    "publish_status",
    "render_status",
    "status_once",
]
