"""GestureSketch CLI.

Usage:
    gesture-sketch replay   Run a recorded session through the full pipeline
    gesture-sketch config   Print or write the default session config
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
import yaml

from gesture_sketch.canvas import CanvasSink
from gesture_sketch.config import SessionConfig
from gesture_sketch.recorder import PredictionPlayer, ReplayDetector, ReplaySource
from gesture_sketch.scheduler import DetectionScheduler, TickResult

app = typer.Typer(
    name="gesture-sketch",
    help="✍️  Gesture-driven freehand drawing from hand detector output.",
    add_completion=False,
)


def _load_config(path: Optional[str]) -> SessionConfig:
    if path is None:
        return SessionConfig()
    config_path = Path(path)
    if not config_path.exists():
        typer.echo(f"❌ Config not found: {path}", err=True)
        raise typer.Exit(1)
    try:
        return SessionConfig.from_yaml(config_path)
    except (ValueError, TypeError, yaml.YAMLError) as e:
        typer.echo(f"❌ Invalid config {path}: {e}", err=True)
        raise typer.Exit(1)


async def _replay(scheduler: DetectionScheduler, source: ReplaySource, realtime: bool):
    await scheduler.start(autorun=realtime)
    try:
        if realtime:
            while scheduler.is_running and not source.exhausted:
                await asyncio.sleep(scheduler.config.tick_period)
        else:
            while not source.exhausted:
                await scheduler.tick()
    finally:
        scheduler.stop()
        await scheduler.join(timeout=scheduler.config.ready_timeout)


@app.command()
def replay(
    recording: str = typer.Argument(..., help="Path to a recorded session (.json)"),
    config: Optional[str] = typer.Option(None, "--config", help="Session config YAML"),
    width: float = typer.Option(640, help="Drawing container width"),
    height: float = typer.Option(480, help="Drawing container height"),
    realtime: bool = typer.Option(False, help="Tick at the configured period instead of as fast as possible"),
    log_level: str = typer.Option("warning", help="Log level"),
):
    """Replay recorded detector output through a detection session."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    path = Path(recording)
    if not path.exists():
        typer.echo(f"❌ Recording not found: {recording}", err=True)
        raise typer.Exit(1)

    session_config = _load_config(config)
    player = PredictionPlayer.load(path)
    if player.frame_size is None:
        typer.echo(f"❌ Recording is empty: {recording}", err=True)
        raise typer.Exit(1)

    typer.echo(f"▶️  Replaying {path.name} ({player.frame_count} ticks, {player.duration:.1f}s)")

    source = ReplaySource(player)
    sink = CanvasSink.fitted(player.frame_size, (width, height))
    scheduler = DetectionScheduler(source, ReplayDetector(), sink, session_config)

    def on_tick(result: TickResult):
        if result.action is not None:
            typer.echo(
                f"   🤚 {result.event.triggered} → {result.action.type.value}"
                f" at {result.event.timestamp:.2f}s"
            )

    scheduler.on_tick(on_tick)
    asyncio.run(_replay(scheduler, source, realtime))

    counts = scheduler.metrics.tick_counts
    typer.echo(f"\n✅ Replay complete.")
    typer.echo(f"   Segments drawn:  {sink.segment_count}")
    typer.echo(f"   Actions fired:   {sum(scheduler.metrics.action_counts.values())}")
    typer.echo(f"   Ticks consumed:  {counts.get('ok', 0)}")
    typer.echo(f"   FPS:             {scheduler.metrics.fps}")
    typer.echo(f"   Surface:         {sink.width:.0f}x{sink.height:.0f}")


@app.command("config")
def show_config(
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write to this file instead of stdout"),
):
    """Print the default session configuration as YAML."""
    defaults = SessionConfig()
    if output:
        defaults.to_yaml(output)
        typer.echo(f"💾 Saved to {output}")
    else:
        typer.echo(yaml.dump(defaults.to_dict(), default_flow_style=False, sort_keys=False), nl=False)


def main():
    app()


if __name__ == "__main__":
    main()
