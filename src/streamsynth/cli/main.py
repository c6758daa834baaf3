# src/streamsynth/cli/main.py
"""StreamSynth command-line interface."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from streamsynth.core.config import ConfigError, load_config, resolve_engine_settings
from streamsynth.core.config.settings import EngineSettings
from streamsynth.core.exceptions import StreamSynthException
from streamsynth.core.pipeline.definition import PipelineDefinition
from streamsynth.dsl.compiler import DSL_TEMPLATE, compile_file

COMMANDS = ("run", "create")


def _attach_printers(pipeline: PipelineDefinition, out: TextIO, err: TextIO) -> None:
    pipeline.on("started", lambda: print("Pipeline started", file=out))
    pipeline.on("stopped", lambda: print("Pipeline stopped", file=out))
    pipeline.on("end", lambda: print("Source ended", file=out))
    pipeline.on("error", lambda e: print(f"Pipeline error: {e}", file=err))
    pipeline.on(
        "spillover",
        lambda path, count: print(f"Spillover: {count} events written to {path}", file=out),
    )


async def run_pipeline(
    pipeline: PipelineDefinition,
    *,
    stop_event: asyncio.Event,
    config: Optional[Dict[str, Any]] = None,
    settings: Optional[EngineSettings] = None,
    out: TextIO = sys.stdout,
    err: TextIO = sys.stderr,
) -> None:
    """Inicia a pipeline, espera `stop_event` e para de forma limpa."""
    _attach_printers(pipeline, out, err)
    await pipeline.start(config=config, settings=settings)
    try:
        await stop_event.wait()
    finally:
        print("Shutting down...", file=out)
        await pipeline.stop()


async def _run_until_interrupt(
    pipeline: PipelineDefinition,
    config: Dict[str, Any],
    settings: EngineSettings,
) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # sem suporte no loop (Windows): cai no KeyboardInterrupt de main()
            continue
    await run_pipeline(pipeline, stop_event=stop_event, config=config, settings=settings)


def cmd_run(args: argparse.Namespace) -> int:
    """Compile a DSL file and run it until interrupted."""
    try:
        config: Dict[str, Any] = {}
        if args.config:
            config = load_config(defaults_path=args.config, local_path=args.local_config)
        elif args.local_config:
            print("Error: --local-config requires --config", file=sys.stderr)
            return 1
        settings = resolve_engine_settings(config)
        pipeline = compile_file(args.file, settings=settings)
    except (ConfigError, StreamSynthException, OSError) as e:
        print(f"Failed to load pipeline: {e}", file=sys.stderr)
        return 1

    try:
        asyncio.run(_run_until_interrupt(pipeline, config, settings))
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        print(f"Failed to run pipeline: {e}", file=sys.stderr)
        return 1
    return 0


def cmd_create(args: argparse.Namespace) -> int:
    """Write a DSL template."""
    try:
        Path(args.file).write_text(DSL_TEMPLATE, encoding="utf-8")
    except OSError as e:
        print(f"Failed to create template: {e}", file=sys.stderr)
        return 1
    print(f"Template created at {args.file}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="streamsynth",
        description="StreamSynth - continuous event processing pipelines",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    run_parser = subparsers.add_parser("run", help="Run a pipeline DSL file until interrupted")
    run_parser.add_argument("file", type=str, help="Path to pipeline DSL file")
    run_parser.add_argument("--config", type=str, help="Engine config (YAML or JSON)")
    run_parser.add_argument("--local-config", type=str, help="Local overrides merged over --config")
    run_parser.set_defaults(func=cmd_run)

    create_parser = subparsers.add_parser("create", help="Create a pipeline DSL template")
    create_parser.add_argument("file", type=str, help="Path for the new DSL file")
    create_parser.set_defaults(func=cmd_create)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint."""
    parser = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)

    # comando ausente ou desconhecido: ajuda + sucesso
    if not argv or (not argv[0].startswith("-") and argv[0] not in COMMANDS):
        parser.print_help()
        return 0

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
