"""
netshell CLI: run the pipelines of a configuration file from the terminal.

Usage examples:
    python -m netshell deploy.yaml
    python -m netshell deploy.yaml --pipeline release --var version=1.4.2
    python -m netshell deploy.yaml --json > results.json

Exit status: 0 when every pipeline succeeded, 1 when any pipeline failed,
2 when the configuration could not be loaded.
"""

import argparse
import asyncio
import dataclasses
import json
import sys
from typing import Dict, List, Optional, Sequence

from netshell.base.config import get_config, set_config, setup_logging
from netshell.config.loader import load_config
from netshell.engine.events import OutputEvent, OutputType
from netshell.engine.models import PipelineResult
from netshell.engine.orchestrator import Orchestrator
from netshell.errors import ConfigError

EXIT_OK = 0
EXIT_PIPELINE_FAILED = 1
EXIT_CONFIG_ERROR = 2


def parse_vars(pairs: Sequence[str]) -> Dict[str, str]:
    variables = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"--var expects NAME=VALUE, got {pair!r}")
        variables[name] = value
    return variables


def print_event(event: OutputEvent) -> None:
    prefix = f"[{event.pipeline_name}/{event.step_name}@{event.target_name}]"
    if event.output_type is OutputType.STDERR:
        print(f"{prefix} {event.content}", file=sys.stderr, flush=True)
    elif event.output_type is OutputType.STDOUT:
        print(f"{prefix} {event.content}", flush=True)
    else:
        print(f"{prefix} -- {event.content}", flush=True)


def print_summary(results: List[PipelineResult]) -> None:
    print()
    for result in results:
        status = "OK" if result.overall_success else "FAILED"
        print(f"Pipeline '{result.pipeline_name}': {status} ({result.total_execution_time_ms} ms)")
        for step_result in result.step_results:
            er = step_result.execution_result
            mark = "ok" if er.success else "FAIL"
            line = (
                f"  {mark:4} {step_result.step_name} @ {step_result.target_name}: "
                f"exit {er.exit_code}, {er.execution_time_ms} ms"
            )
            if er.error_message:
                line += f" - {er.error_message}"
            print(line)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="netshell", description="Run templated shell-script pipelines")
    parser.add_argument("config", help="Path to the YAML pipeline file")
    parser.add_argument(
        "--var", dest="vars", action="append", default=[], metavar="NAME=VALUE",
        help="Override a global variable (repeatable)",
    )
    parser.add_argument("--pipeline", help="Run only this pipeline")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--quiet", action="store_true", help="Do not stream script output")
    parser.add_argument("--json", action="store_true", help="Print results as JSON instead of a summary")
    return parser


async def run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    orchestrator = Orchestrator(config, variables=parse_vars(args.vars))
    callback = (lambda event: None) if args.quiet or args.json else print_event

    if args.pipeline:
        results = [await orchestrator.execute_pipeline(args.pipeline, output_callback=callback)]
    else:
        results = await orchestrator.execute_all_pipelines_with_realtime_output(callback)

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
    else:
        print_summary(results)
    return EXIT_OK if all(r.overall_success for r in results) else EXIT_PIPELINE_FAILED


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    runtime = get_config()
    if args.log_level:
        runtime = dataclasses.replace(runtime, log=dataclasses.replace(runtime.log, level=args.log_level))
        set_config(runtime)
    setup_logging(runtime)

    try:
        parse_vars(args.vars)
        return asyncio.run(run(args))
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))
    except ConfigError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        return EXIT_CONFIG_ERROR


if __name__ == "__main__":
    sys.exit(main())
