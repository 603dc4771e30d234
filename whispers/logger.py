"""Event log shared by every Whispers component."""

import json
from datetime import datetime
from typing import Optional, Callable


class Logger:
    """Timestamped event log.

    A line reads `[time] component: message | {data}`. It is printed when
    `echo` is set, appended to `log_path` when one is given, and passed to
    `callback(component, message, data)` so a front end can show it.
    Components log through `for_component()`, which tags their lines.
    """

    def __init__(self, log_path: Optional[str] = None, callback: Optional[Callable] = None,
                 echo: bool = True):
        self.log_path = log_path
        self.callback = callback
        self.echo = echo
        self.events = 0
        self.file = None
        if log_path:
            self.file = open(log_path, "a")
            self.file.write(f"\n--- Whispers session {datetime.now().isoformat(timespec='seconds')} ---\n")
            self.file.flush()

    def for_component(self, component: str) -> "ComponentLogger":
        return ComponentLogger(self, component)

    def log(self, message: str, data: Optional[dict] = None, component: str = "app"):
        """Record one event; `data` is JSON-encoded, non-JSON values via str()"""
        self.events += 1
        line = f"[{datetime.now().isoformat(timespec='milliseconds')}] {component}: {message}"
        if data:
            line += f" | {json.dumps(data, default=str, sort_keys=True)}"
        if self.echo:
            print(line)
        if self.file:
            self.file.write(line + "\n")
            self.file.flush()
        if self.callback:
            self.callback(component, message, data)

    def close(self):
        if self.file:
            self.file.close()
            self.file = None


class ComponentLogger:
    """View of a Logger that tags every line with one component name"""

    def __init__(self, parent: Logger, component: str):
        self.parent = parent
        self.component = component

    def log(self, message: str, data: Optional[dict] = None):
        self.parent.log(message, data, component=self.component)


class NullLogger(Logger):
    """Discards everything; the default when no log is wired in"""

    def __init__(self):
        super().__init__(echo=False)

    def log(self, message: str, data: Optional[dict] = None, component: str = "app"):
        pass


def component_logger(logger: Optional[Logger], component: str) -> ComponentLogger:
    """Tagged logger for `component`, discarding output when `logger` is None"""
    return (logger or NullLogger()).for_component(component)
