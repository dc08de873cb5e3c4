# scheduler.py
"""
FILE: scheduler.py
DESCRIPTION:
  Runs every enabled source on its own cadence.
  - PeriodicTask: one daemon thread per task, ticking at a fixed rate.
    First tick happens after one full interval. A tick that overruns its
    slot is followed at once by the next one, and further missed slots are
    dropped, so a task never overlaps itself.
  - Scheduler: owns the tasks, the edge-triggered sources and any hardware
    handles that need closing on shutdown.
"""
import threading
import time

import logger


class PeriodicTask:
    def __init__(self, name, interval, action):
        if interval is None or interval <= 0:
            raise ValueError(f"Task '{name}': interval must be > 0 (got {interval})")
        self.name = name
        self.interval = interval
        self.action = action
        self.ticks = 0

        self._stop = threading.Event()
        self._thread = None

    def start(self):
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name=f"task-{self.name}", daemon=True)
        self._thread.start()

    def _run(self):
        next_tick = time.monotonic() + self.interval
        # wait() returns True once stop() is called, ending the loop
        while not self._stop.wait(max(0.0, next_tick - time.monotonic())):
            self.run_once()
            next_tick = self._next_deadline(next_tick, time.monotonic())

    def _next_deadline(self, last_tick, now):
        """Next slot on the start + k*interval grid. At most one late tick is kept."""
        next_tick = last_tick + self.interval
        if next_tick < now:
            missed = int((now - next_tick) // self.interval)
            next_tick += missed * self.interval
        return next_tick

    def run_once(self):
        self.ticks += 1
        try:
            self.action()
        except Exception as e:
            logger.error(self.name, f"Tick failed: {e}")

    def cancel(self):
        self._stop.set()

    def stop(self, timeout=None):
        self.cancel()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def is_alive(self):
        return self._thread is not None and self._thread.is_alive()


class Scheduler:
    def __init__(self):
        self.tasks = []
        self.edge_sources = []
        self.resources = []
        self._started = False

    def register_periodic(self, name, interval, action):
        task = PeriodicTask(name, interval, action)
        self.tasks.append(task)
        if self._started:
            task.start()
        logger.info("SCHEDULER", f"{name}: every {interval:g}s")
        return task

    def register_edge_trigger(self, source, on_asserted, on_cleared):
        """Binds callbacks fired once per transition, on the driver's own thread."""
        source.when_activated = on_asserted
        source.when_deactivated = on_cleared
        self.edge_sources.append(source)
        return source

    def add_resource(self, resource):
        """Anything with a close() method, released on stop()."""
        self.resources.append(resource)
        return resource

    def start(self):
        self._started = True
        for task in self.tasks:
            task.start()

    def stop(self, timeout=5.0):
        for task in self.tasks:
            task.cancel()
        for task in self.tasks:
            task.stop(timeout)

        for source in self.edge_sources:
            source.when_activated = None
            source.when_deactivated = None

        for resource in self.resources:
            try:
                resource.close()
            except Exception as e:
                logger.warn("SHUTDOWN", f"Failed to release {resource!r}: {e}")
        self._started = False
