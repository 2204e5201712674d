"""
Backend process supervision.

One child at a time. Its stdout/stderr are drained by daemon threads and
forwarded to logging as they arrive, tagged "Server" / "Server Error".
A crashed backend is reported and left stopped; nothing restarts it.
"""

import enum
import logging
import os
import subprocess
import threading

from .config import STOP_GRACE
from .errors import BinaryNotFound, SpawnFailed

logger = logging.getLogger(__name__)

READ_CHUNK = 4096


class ProcessState(enum.Enum):
    NOT_STARTED = "not started"
    RUNNING     = "running"
    STOPPED     = "stopped"
    FAILED      = "failed"


class SupervisedProcess:

    def __init__(self, path, args=()):
        self.path       = path
        self.args       = list(args)
        self.state      = ProcessState.NOT_STARTED
        self.reason     = None
        self.returncode = None
        self._proc      = None
        self._threads   = []
        self._stopping  = False

    def __repr__(self):
        return f"<SupervisedProcess {self.path} {self.state.value}>"

    @property
    def pid(self):
        return self._proc.pid if self._proc else None

    @property
    def running(self):
        return self.state is ProcessState.RUNNING

    def launch(self):
        if not os.path.exists(self.path):
            self.state, self.reason = ProcessState.FAILED, "binary not found"
            raise BinaryNotFound(self.path)

        try:
            self._proc = subprocess.Popen(
                [self.path, *self.args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            self.state, self.reason = ProcessState.FAILED, str(e)
            raise SpawnFailed(self.path, e) from e

        self.state = ProcessState.RUNNING
        self._threads = [
            self._spawn(self._forward, self._proc.stdout, "Server", name="stdout"),
            self._spawn(self._forward, self._proc.stderr, "Server Error", name="stderr"),
        ]
        self._monitor = self._spawn(self._watch, name="monitor")

    def _spawn(self, target, *args, name):
        t = threading.Thread(
            target=target, args=args, daemon=True,
            name=f"server-{name}-{self.pid}",
        )
        t.start()
        return t

    def _forward(self, stream, tag):
        fd = stream.fileno()
        try:
            while True:
                # os.read hands back whatever is available, so partial
                # lines are logged without waiting for a newline.
                chunk = os.read(fd, READ_CHUNK)
                if not chunk:
                    break
                text = chunk.decode("utf-8", errors="replace")
                for line in text.splitlines():
                    line = line.strip()
                    if line:
                        logger.info("[%s] %s", tag, line)
        except OSError as e:
            logger.debug("[%s] stream closed: %s", tag, e)
        finally:
            stream.close()

    def _watch(self):
        code = self._proc.wait()
        self.returncode = code
        self.state = ProcessState.STOPPED
        if self._stopping:
            logger.info("Server exited with code %s", code)
        else:
            logger.warning("Server exited unexpectedly with code %s", code)

    def terminate(self, grace=STOP_GRACE):
        """SIGTERM, then SIGKILL if the process outlives the grace period."""
        if self._proc is None or self._proc.poll() is not None:
            return
        self._stopping = True
        self._proc.terminate()
        try:
            self._proc.wait(timeout=grace)
        except subprocess.TimeoutExpired:
            logger.warning("Server ignored SIGTERM for %.1fs; killing pid %s", grace, self.pid)
            self._proc.kill()
            self._proc.wait()

    def wait(self, timeout=None):
        """Wait for the process to exit and its output to be drained."""
        if self._proc is None:
            return None
        code = self._proc.wait(timeout=timeout)
        for t in self._threads:
            t.join(timeout)
        self._monitor.join(timeout)
        return code


class ProcessSupervisor:

    def __init__(self, stop_grace=STOP_GRACE):
        self.stop_grace = stop_grace
        self.current    = None
        self._lock      = threading.Lock()

    def start(self, path, args=()):
        """Launch the backend, replacing any instance already running."""
        with self._lock:
            if self.current is not None:
                self._stop_locked()
            handle = SupervisedProcess(path, args)
            handle.launch()
            self.current = handle
        logger.info("Server started: %s %s (pid %s)", path, " ".join(handle.args), handle.pid)
        return handle

    def stop(self, handle=None):
        """Stop the backend. A no-op when nothing was started."""
        with self._lock:
            if self.current is None:
                return
            if handle is not None and handle is not self.current:
                return
            self._stop_locked()

    def _stop_locked(self):
        handle, self.current = self.current, None
        try:
            handle.terminate(self.stop_grace)
        finally:
            logger.info("Server stopped")
