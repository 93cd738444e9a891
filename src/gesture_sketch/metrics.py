"""Session metrics.

FrameRateMeter keeps the rolling frames-per-second figure reported while a
session runs. MetricsCollector aggregates counters and renders them in
Prometheus text exposition format for whoever wants to scrape or log them.

Tracked metrics:
- gesture_sketch_ticks_total (counter, by tick status)
- gesture_sketch_actions_total (counter, by action type)
- gesture_sketch_segments_total (counter)
- gesture_sketch_detection_failures_total (counter)
- gesture_sketch_render_failures_total (counter)
- gesture_sketch_fps (gauge)
- gesture_sketch_detection_latency_seconds (histogram)
"""

from __future__ import annotations

import threading
from collections import Counter
from typing import Optional


class FrameRateMeter:
    """Counts frames and publishes fps once per `window` seconds."""

    def __init__(self, window: float = 1.0):
        self.window = window
        self._count = 0
        self._window_start: Optional[float] = None
        self.fps = 0

    def tick(self, now: float) -> Optional[int]:
        """Count one frame. Returns the new fps when a window closes."""
        if self._window_start is None:
            self._window_start = now
            return None
        self._count += 1

        elapsed = now - self._window_start
        if elapsed > self.window:
            self.fps = round(self._count / elapsed)
            self._count = 0
            self._window_start = now
            return self.fps
        return None

    def reset(self):
        self._count = 0
        self._window_start = None
        self.fps = 0


class _Histogram:
    """Simple histogram with configurable buckets."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> str:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        with self._lock:
            cumulative = 0
            for i, b in enumerate(self.buckets):
                cumulative += self.bucket_counts[i]
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return "\n".join(lines)


class MetricsCollector:
    """Collects counters for one scheduler across its sessions."""

    def __init__(self):
        self._ticks: Counter = Counter()
        self._actions: Counter = Counter()
        self._segments_total = 0
        self._detection_failures = 0
        self._render_failures = 0
        self._fps = 0
        self._lock = threading.Lock()

        # Detector latency: 10ms to 1s
        self._latency = _Histogram([0.010, 0.025, 0.050, 0.100, 0.150, 0.250, 0.500, 1.000])

    def record_tick(self, status: str):
        with self._lock:
            self._ticks[status] += 1

    def record_action(self, name: str):
        with self._lock:
            self._actions[name] += 1

    def record_segment(self):
        with self._lock:
            self._segments_total += 1

    def record_detection(self, latency_seconds: float):
        self._latency.observe(latency_seconds)

    def record_detection_failure(self):
        with self._lock:
            self._detection_failures += 1

    def record_render_failure(self):
        with self._lock:
            self._render_failures += 1

    def set_fps(self, fps: int):
        self._fps = fps

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        lines.append("# HELP gesture_sketch_ticks_total Detection ticks by outcome")
        lines.append("# TYPE gesture_sketch_ticks_total counter")
        with self._lock:
            for status, count in sorted(self._ticks.items()):
                lines.append(f'gesture_sketch_ticks_total{{status="{status}"}} {count}')
        lines.append("")

        lines.append("# HELP gesture_sketch_actions_total One-shot gesture actions fired")
        lines.append("# TYPE gesture_sketch_actions_total counter")
        with self._lock:
            for name, count in sorted(self._actions.items()):
                lines.append(f'gesture_sketch_actions_total{{action="{name}"}} {count}')
        lines.append("")

        lines.append("# HELP gesture_sketch_segments_total Stroke segments drawn")
        lines.append("# TYPE gesture_sketch_segments_total counter")
        lines.append(f"gesture_sketch_segments_total {self._segments_total}")
        lines.append("")

        lines.append("# HELP gesture_sketch_detection_failures_total Failed or timed out detector calls")
        lines.append("# TYPE gesture_sketch_detection_failures_total counter")
        lines.append(f"gesture_sketch_detection_failures_total {self._detection_failures}")
        lines.append("")

        lines.append("# HELP gesture_sketch_render_failures_total Render sink errors")
        lines.append("# TYPE gesture_sketch_render_failures_total counter")
        lines.append(f"gesture_sketch_render_failures_total {self._render_failures}")
        lines.append("")

        lines.append("# HELP gesture_sketch_fps Observed detection frames per second")
        lines.append("# TYPE gesture_sketch_fps gauge")
        lines.append(f"gesture_sketch_fps {self._fps}")
        lines.append("")

        lines.append(self._latency.render(
            "gesture_sketch_detection_latency_seconds",
            "Detector call latency in seconds",
        ))
        lines.append("")

        return "\n".join(lines) + "\n"

    @property
    def tick_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._ticks)

    @property
    def action_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._actions)

    @property
    def segments_total(self) -> int:
        return self._segments_total

    @property
    def detection_failures(self) -> int:
        return self._detection_failures

    @property
    def fps(self) -> int:
        """Last published frame rate; survives the end of a session."""
        return self._fps
