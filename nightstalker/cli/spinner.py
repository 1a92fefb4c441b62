"""Terminal spinner shown while the storyteller is writing."""

import sys
import threading


class Spinner:
    """
    Context manager that animates a status line on stderr.

    The session controller reports its stage through on_stage; pass
    spinner.update as that callback to keep the line current.
    """

    FRAMES = ("   ", ".  ", ".. ", "...")
    INTERVAL = 0.3

    def __init__(self, message: str = "The night stirs", stream=None):
        self.message = message
        self.stream = stream or sys.stderr
        self._stop = threading.Event()
        self._thread = None

    def _spin(self):
        tick = 0
        while not self._stop.is_set():
            frame = self.FRAMES[tick % len(self.FRAMES)]
            self.stream.write(f"\r  {self.message}{frame}")
            self.stream.flush()
            tick += 1
            self._stop.wait(self.INTERVAL)
        self.stream.write("\r" + " " * (len(self.message) + 8) + "\r")
        self.stream.flush()

    def __enter__(self):
        self._thread = threading.Thread(target=self._spin, daemon=True)
        self._thread.start()
        return self

    def __exit__(self, *exc):
        self._stop.set()
        self._thread.join()

    def update(self, message: str):
        self.message = message
