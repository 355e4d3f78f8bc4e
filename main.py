"""
main.py — single entry point.

  python main.py serve
      Run the upload server (POST /api/analyze) until Ctrl+C / SIGTERM.

  python main.py analyse PHOTO_OR_DIR... [--server URL] [--out FILE] [--batch-size N]
      Analyse photos in batches and write image_analysis_results.csv.
      Without --server the pipeline runs in-process; with it, each batch is
      POSTed to a running `serve` instance.

Exit status of `analyse` is 1 when the run failed or there was nothing to do.
"""
import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

import config

# Log file lives next to the exports by default (DATA_DIR)
_data_dir = Path(os.getenv("DATA_DIR", config.DATA_DIR))
_data_dir.mkdir(parents=True, exist_ok=True)

logging.basicConfig(
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    level=logging.INFO,
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(str(_data_dir / "analyzer.log"), encoding="utf-8"),
    ],
)
logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
logging.getLogger("google_genai").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tif", ".tiff", ".heic", ".heif"}


def collect_images(paths: list[str]) -> list[Path]:
    """Expand directories (non-recursive) and keep only image files, sorted by name."""
    found: list[Path] = []
    for raw in paths:
        p = Path(raw)
        if p.is_dir():
            found.extend(sorted(c for c in p.iterdir() if c.is_file() and c.suffix.lower() in IMAGE_SUFFIXES))
        elif p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES:
            found.append(p)
        else:
            logger.warning("Skipping %s (not an image file)", p)
    return found


async def serve() -> None:
    from server import start_server

    runner = await start_server()
    stop_event = asyncio.Event()

    def _stop(*_):
        logger.info("Shutdown signal received.")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _stop)
        except (NotImplementedError, RuntimeError):
            # Windows doesn't support add_signal_handler for all signals
            pass

    logger.info("✅ Server is running. Press Ctrl+C to stop.")
    await stop_event.wait()
    await runner.cleanup()
    logger.info("Goodbye.")


async def analyse(args: argparse.Namespace) -> int:
    import report
    from orchestrator import BatchOrchestrator, UsageError, reading_from_disk

    if args.server:
        from client import AnalyzeClient
        submit = AnalyzeClient(args.server).submit
    else:
        from pipeline import get_pipeline
        submit = get_pipeline().analyse_batch

    paths = collect_images(args.paths)

    orchestrator = BatchOrchestrator(
        submit=reading_from_disk(submit),
        batch_size=args.batch_size,
        on_progress=lambda progress: print(report.progress_line(progress), flush=True),
    )
    try:
        run_report = await orchestrator.run(paths)
    except (UsageError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(report.summary(run_report))

    try:
        data = orchestrator.export()
    except UsageError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    out = Path(args.out)
    out.write_bytes(data)
    logger.info("Wrote %d row(s) to %s", len(run_report.results), out)
    return 0 if run_report.ok else 1


def build_parser() -> argparse.ArgumentParser:
    from exporter import EXPORT_FILENAME

    parser = argparse.ArgumentParser(description="Identify, price and grade items in photos.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="run the upload server")

    p = sub.add_parser("analyse", help="analyse photos and export a CSV")
    p.add_argument("paths", nargs="+", help="image files or directories")
    p.add_argument("--server", help="base URL of a running upload server, e.g. http://127.0.0.1:8080")
    p.add_argument("--out", default=EXPORT_FILENAME, help=f"CSV output path (default: {EXPORT_FILENAME})")
    p.add_argument("--batch-size", type=int, default=config.BATCH_SIZE, help="files per batch")
    return parser


def main() -> None:
    args = build_parser().parse_args()
    try:
        if args.command == "serve":
            asyncio.run(serve())
        else:
            sys.exit(asyncio.run(analyse(args)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
