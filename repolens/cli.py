"""CLI entrypoints for repolens commands."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List

from .config import ConfigError, RepoLensConfig, load_config
from .errors import RepoLensError, UsageError
from .logging import configure_logging
from .report import SemanticReport, schema_as_json, write_report_json
from .scanner import Scanner

_EXIT_FAILURE = 1
_EXIT_USAGE = 2

_GREEN = "\x1b[32m"
_RED = "\x1b[31m"
_RESET = "\x1b[0m"
_NOISE_THRESHOLD = 0.10
_TOP_LANGUAGES = 6


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_report_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--json",
        dest="json_out",
        type=Path,
        default=None,
        help="Also write the full report to this .json file.",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Ignore cached results and do not store this scan.",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable ANSI colors in the terminal summary.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repolens",
        description="Inspect a repository and report its modules, languages and tech stack.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a .repolens.yml file or a directory containing one.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs, with timestamps, to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser("scan", help="Scan a local repository.")
    _add_verbose_option(scan_parser, suppress_default=True)
    scan_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )
    _add_report_options(scan_parser)

    remote_parser = subparsers.add_parser(
        "remote",
        help="Download and scan a remote repository (owner/repo[/tree/<ref>/<subdir>]).",
    )
    _add_verbose_option(remote_parser, suppress_default=True)
    remote_parser.add_argument("reference", help="Remote repository reference or URL.")
    remote_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Abort the download and scan after this many seconds.",
    )
    _add_report_options(remote_parser)

    schema_parser = subparsers.add_parser(
        "schema", help="Print the JSON Schema of the report format."
    )
    _add_verbose_option(schema_parser, suppress_default=True)
    schema_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the schema to this file instead of stdout.",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for repolens commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    if args.command == "schema":
        _run_schema(parser, args.output)
        return

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(_EXIT_USAGE, f"{exc}\n")

    if args.command == "serve":
        from .service import run_service

        run_service(host=args.host, port=args.port, config=config)
        return

    report = _run_scan(parser, args, config)
    if args.json_out is not None:
        try:
            target = write_report_json(args.json_out, report)
        except UsageError as exc:
            parser.exit(_EXIT_USAGE, f"{exc}\n")
        except OSError as exc:
            parser.exit(_EXIT_FAILURE, f"Failed to write report: {exc}\n")
        print(target)
    print(render_report(report, color=not args.no_color))


def _run_schema(parser: argparse.ArgumentParser, output: Path | None) -> None:
    schema = schema_as_json()
    if output is None:
        print(schema)
        return
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(schema + "\n", encoding="utf-8")
    except OSError as exc:
        parser.exit(_EXIT_FAILURE, f"Failed to write schema: {exc}\n")
    print(output)


def _run_scan(
    parser: argparse.ArgumentParser, args: argparse.Namespace, config: RepoLensConfig
) -> SemanticReport:
    use_cache = not args.no_cache
    try:
        scanner = Scanner(config)
    except ValueError as exc:
        # Unknown detector ids in the configuration.
        parser.exit(_EXIT_USAGE, f"{exc}\n")

    try:
        if args.command == "remote":
            if args.timeout is not None:
                return asyncio.run(
                    scanner.scan_remote_async(
                        args.reference, timeout=args.timeout, use_cache=use_cache
                    )
                )
            return scanner.scan_remote(args.reference, use_cache=use_cache)
        return scanner.scan(args.path, use_cache=use_cache)
    except UsageError as exc:
        parser.exit(_EXIT_USAGE, f"{exc}\n")
    except RepoLensError as exc:
        parser.exit(
            _EXIT_FAILURE,
            f"repolens {args.command} failed: {exc}\nRun with --verbose for more details.\n",
        )


def render_report(report: SemanticReport, *, color: bool = True) -> str:
    """Human-readable terminal summary of ``report``."""
    lines: List[str] = ["Monorepo:"]
    for module in report.modules:
        lines.append(f"  - {module.name} ({module.path})")
    lines.append("")

    for module in report.modules:
        lines.append(f"Module: {module.name} (Path: {module.path})")
        backend = module.backend
        if backend is not None:
            lines.append(
                f"  Backend: framework={backend.framework}, rest={str(backend.rest).lower()}, "
                f"db={backend.db}, queue={backend.queue}"
            )
        frontend = module.frontend
        if frontend is not None:
            vue = str(frontend.vue) if frontend.vue is not None else "None"
            lines.append(
                f"  Frontend: builder={frontend.builder}, vue={vue}, "
                f"store={frontend.store}, ui={frontend.ui}"
            )
        if module.frameworks:
            lines.append(f"  Frameworks: {', '.join(module.frameworks)}")
        if module.deps:
            lines.append(f"  Deps: {', '.join(module.deps)}")
        if module.generated is not None:
            lines.append(
                f"  Generated: {module.generated.files} files, "
                f"{module.generated.kloc_ignored:.1f} kLOC ignored"
            )
        if module.assets is not None:
            lines.append(f"  Assets: {module.assets.files} files, {module.assets.bytes} bytes")
        if module.languages:
            top = " · ".join(
                f"{stat.language} {stat.percent:.1f}%" for stat in module.languages[:_TOP_LANGUAGES]
            )
            lines.append(f"  Languages: {top}")
        for warning in module.warnings:
            lines.append(f"  Warning: {warning}")
        lines.append("")

    if report.detected:
        lines.append(
            "Detected: " + ", ".join(component.name for component in report.detected)
        )
    if report.package_managers:
        lines.append("Package managers: " + ", ".join(report.package_managers))
    for submodule in report.submodules:
        status = "scanned" if submodule.scanned else "not scanned"
        line = f"Submodule: {submodule.path} ({status})"
        if submodule.scan_warning:
            line = f"{line}: {submodule.scan_warning}"
        lines.append(line)
    if report.cache_hit:
        lines.append("(served from cache)")

    ratio = report.summary.ignored_ratio
    message = f"Noise ratio: {ratio * 100:.2f}% (ignoredSize/totalSize)"
    if color:
        tint = _GREEN if ratio <= _NOISE_THRESHOLD else _RED
        message = f"{tint}{message}{_RESET}"
    lines.append(message)
    return "\n".join(lines)


if __name__ == "__main__":
    main(sys.argv[1:])
