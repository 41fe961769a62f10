import argparse
import asyncio
import json
import sys
from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table
from rich.text import Text
from shot_breakdown.config import settings
from shot_breakdown.exceptions import ValidationError
from shot_breakdown.models.pipeline import PipelineSnapshot, PipelineStage
from shot_breakdown.models.shot import Shot, format_time
from shot_breakdown.models.video import VideoBlob
from shot_breakdown.services.pipeline import ShotPipeline

console = Console()

def thumbnail_status(snapshot: PipelineSnapshot, index: int) -> str:
    if snapshot.thumbnail_for(index):
        return "[green]thumbnail ✔[/green]"
    if index in snapshot.failed_frames:
        return "[red]thumbnail unavailable[/red]"
    return "[dim]thumbnail pending[/dim]"

def to_markdown(snapshot: PipelineSnapshot) -> str:
    lines = []
    lines.append(f"# {snapshot.video_name or 'Video'}")
    lines.append(f"\n> {len(snapshot.shots)} shots detected\n")
    for i, shot in enumerate(snapshot.shots):
        lines.append(f"## Shot {i + 1} ({format_time(shot.start_time_seconds)} - {format_time(shot.end_time_seconds)})")
        lines.append(f"- Shot type: {shot.shot_type}")
        lines.append(f"- Camera movement: {shot.camera_movement}")
        lines.append(f"- Mood: {shot.mood}")
        lines.append(f"\n{shot.description}\n")
        lines.append("```text")
        lines.append(shot.image_prompt)
        lines.append("```")
        lines.append("")
    return "\n".join(lines)

def to_json(snapshot: PipelineSnapshot) -> str:
    return json.dumps({
        "video": snapshot.video_name,
        "shots": [shot.to_wire() for shot in snapshot.shots],
        "thumbnails": {str(i): url for i, url in sorted((snapshot.thumbnails or {}).items())},
    }, ensure_ascii=False, indent=2)

def card_title(index: int, shot: Shot) -> str:
    start = escape(shot.start_time_formatted or format_time(shot.start_time_seconds))
    return f"[bold]Shot {index + 1}[/bold]  {start} - {format_time(shot.end_time_seconds)}  [dim]({shot.duration:.1f}s)[/dim]"

def summary_line(snapshot: PipelineSnapshot) -> str:
    total = len(snapshot.shots)
    line = f"[bold]{total}[/bold] Shots Detected   [dim]{snapshot.frames_settled}/{total} frames captured"
    if snapshot.failed_frames:
        line += f", {len(snapshot.failed_frames)} unavailable"
    return line + "[/dim]"

def render_card(index: int, shot: Shot, snapshot: PipelineSnapshot):
    meta = Table.grid(padding=(0, 2))
    meta.add_column(style="cyan", no_wrap=True)
    meta.add_column(style="white")
    meta.add_row("Shot type", Text(shot.shot_type))
    meta.add_row("Camera", Text(shot.camera_movement))
    meta.add_row("Mood", Text(shot.mood))

    body = Group(
        meta,
        Text(""),
        Text(shot.description),
        Text(""),
        Panel(Text(shot.image_prompt), title="Image prompt", border_style="magenta"),
    )
    console.print(Panel(body, title=card_title(index, shot), title_align="left", subtitle=thumbnail_status(snapshot, index), subtitle_align="right"))

def render_shots(snapshot: PipelineSnapshot):
    header = summary_line(snapshot)
    if snapshot.video_name:
        size_mb = (snapshot.video_size or 0) / 1024 / 1024
        header += f"   [dim]{escape(snapshot.video_name)} ({size_mb:.1f} MB)[/dim]"
    console.print(Panel(header, border_style="blue"))
    for index, shot in enumerate(snapshot.shots):
        render_card(index, shot, snapshot)

async def run_with_progress(pipeline: ShotPipeline, blob: VideoBlob) -> PipelineSnapshot:
    with Progress(
        SpinnerColumn(),
        TextColumn("[dim]{task.fields[stage]}[/dim]"),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True
    ) as progress:
        task = progress.add_task(description="Starting...", total=100, stage="")

        def on_change(snapshot: PipelineSnapshot):
            progress.update(
                task,
                completed=snapshot.progress,
                description=escape(snapshot.message),
                stage=snapshot.stage_label,
                visible=snapshot.is_active,
            )

        unsubscribe = pipeline.subscribe(on_change)
        try:
            return await pipeline.run(blob)
        finally:
            unsubscribe()

def main():
    parser = argparse.ArgumentParser(description="Smart Scene Breakdown: shot-level cinematography analysis with Gemini")
    parser.add_argument("video", help="Path to a video file")
    parser.add_argument("--mime-type", help="Declared media type (guessed from the file name by default)")
    parser.add_argument("--model", help="Gemini model to use")
    parser.add_argument("--lang", help="Language for descriptions (image prompts stay in English)")
    parser.add_argument("--concurrency", type=int, help="Number of parallel frame captures")
    parser.add_argument("--max-mb", type=float, help="Upload size limit in MB")
    parser.add_argument("--json", action="store_true", help="Print shots and thumbnails as JSON")
    parser.add_argument("--markdown", action="store_true", help="Print shot cards as Markdown")

    args = parser.parse_args()

    # Override settings
    if args.model:
        settings.GEMINI_MODEL = args.model
    if args.lang:
        settings.OUTPUT_LANG = args.lang
    if args.concurrency:
        settings.FRAME_CONCURRENCY = args.concurrency
    if args.max_mb:
        settings.MAX_UPLOAD_MB = args.max_mb

    blob = VideoBlob.from_path(args.video, mime_type=args.mime_type)
    pipeline = ShotPipeline()

    try:
        snapshot = asyncio.run(run_with_progress(pipeline, blob))
    except ValidationError as e:
        console.print(f"[bold red]Rejected:[/bold red] {escape(str(e))}")
        sys.exit(2)
    except KeyboardInterrupt:
        console.print("[yellow]Cancelled.[/yellow]")
        sys.exit(130)

    if snapshot.stage == PipelineStage.ERROR:
        console.print(Panel(
            f"{escape(snapshot.error_message or '')}\n\n[dim]Try uploading a smaller video file (under {settings.MAX_UPLOAD_MB:g}MB) to prevent network timeouts.[/dim]",
            title="Analysis Failed",
            border_style="red"
        ))
        sys.exit(1)

    if args.json:
        sys.stdout.write(to_json(snapshot) + "\n")
    elif args.markdown:
        sys.stdout.write(to_markdown(snapshot) + "\n")
    else:
        render_shots(snapshot)

if __name__ == "__main__":
    main()
