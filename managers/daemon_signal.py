import os
import queue
import signal
from typing import Optional

from utils.logger import log_debug

WAKE_SIGNAL = signal.SIGUSR1


def write_pid_file(path: str, pid: Optional[int] = None) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(f"{pid or os.getpid()}\n")


def remove_pid_file(path: str) -> None:
    """Remove the PID file, but only if it still names this process."""
    if read_pid(path) != os.getpid():
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def read_pid(path: str) -> Optional[int]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read().strip()
    except OSError:
        return None
    try:
        pid = int(content)
    except ValueError:
        return None
    return pid if pid > 0 else None


def _looks_like_daemon(pid: int) -> bool:
    """Guard against a recycled PID: on Linux, check the command line first."""
    cmdline_path = f"/proc/{pid}/cmdline"
    if not os.path.isdir("/proc"):
        return True
    try:
        with open(cmdline_path, "rb") as f:
            cmdline = f.read().replace(b"\x00", b" ").decode("utf-8", "replace")
    except OSError:
        return False
    return "daemon" in cmdline


def notify_daemon(pid_file: str) -> bool:
    """Ask the status daemon to refresh now. Best effort, no acknowledgment.

    Returns True when a signal was delivered; a missing daemon is not an error.
    """
    pid = read_pid(pid_file)
    if pid is None:
        log_debug("No status daemon running (no PID file)")
        return False

    if not _looks_like_daemon(pid):
        log_debug(f"PID {pid} from {pid_file} is not a status daemon; ignoring")
        return False

    try:
        os.kill(pid, WAKE_SIGNAL)
    except ProcessLookupError:
        log_debug(f"Status daemon {pid} is gone")
        return False
    except OSError as e:
        log_debug(f"Could not signal status daemon {pid}: {e}")
        return False
    return True


class WakeChannel:
    """Single-consumer queue of wake reasons for the daemon loop.

    SimpleQueue.put is reentrant, so the signal handler may call it while the
    loop is blocked in wait().
    """

    def __init__(self):
        self._queue: "queue.SimpleQueue[str]" = queue.SimpleQueue()

    def put(self, reason: str) -> None:
        self._queue.put(reason)

    def wait(self, timeout: Optional[float] = None) -> Optional[str]:
        """Block for the next wake reason; coalesce any that piled up behind it."""
        try:
            reason = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

        while True:
            try:
                extra = self._queue.get_nowait()
            except queue.Empty:
                break
            if extra == "stop":
                reason = extra
        return reason

    def install_signal_handler(self, signum: int = WAKE_SIGNAL):
        """Route `signum` into this channel. Returns the previous handler."""
        return signal.signal(signum, lambda _signum, _frame: self.put("signal"))
