"""
Command Line Interface for QA Impact Analyzer

- ``impact``: impact analysis of a change description
- ``tests``: test case generation from a PRD
- ``providers``: provider usability and the resolved fallback order

Results are printed as JSON on stdout. Failures exit non-zero with a
machine-readable error report on stderr.
"""

from __future__ import annotations
import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional
import logging

from pydantic import ValidationError

from .checklist import CATALOG, build_context
from .config import DictConfigStore, FALLBACK_KEY, LayeredConfigStore, PROVIDER_KEY
from .exceptions import (
    AllProvidersFailedError,
    ConfigInvalidError,
    NoProviderConfiguredError,
    QAAnalyzerError,
)
from .models import TaskKind, TaskRequest
from .orchestrator import Orchestrator
from .registry import ProviderRegistry


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr
    )

    # Reduce noise from some libraries
    logging.getLogger('openai').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('requests').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""

    parser = argparse.ArgumentParser(
        prog="qa-analyzer",
        description="QA Impact Analyzer - Turn change descriptions and PRDs into QA artifacts using LLMs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Impact analysis of a change, with checklist context
  qa-analyzer impact --text "Switch checkout to the new tax service" --tag payments --tag api

  # Test cases from a PRD using the hosted provider only
  qa-analyzer tests --file prd.md --provider frontier --no-fallback

  # Show which providers are usable and the resolved order
  qa-analyzer providers
        """
    )

    settings_group = parser.add_argument_group('settings')
    settings_group.add_argument(
        '--config',
        type=Path,
        help='Project settings file (default: ./qa-analyzer.toml)'
    )
    settings_group.add_argument(
        '--provider',
        choices=['local', 'regional', 'frontier'],
        help='Primary provider for this run (overrides settings)'
    )
    fallback = settings_group.add_mutually_exclusive_group()
    fallback.add_argument(
        '--fallback',
        dest='fallback',
        action='store_const',
        const=True,
        help='Try other usable providers when the primary fails'
    )
    fallback.add_argument(
        '--no-fallback',
        dest='fallback',
        action='store_const',
        const=False,
        help='Only try the primary provider'
    )
    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    for name, help_text in (
        ('impact', 'Analyze the impact of a described change'),
        ('tests', 'Generate test cases from a requirements document'),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        source = sub.add_mutually_exclusive_group(required=True)
        source.add_argument('--text', help='Inline source text')
        source.add_argument('--file', type=Path, help='Path to a file with the source text')
        sub.add_argument(
            '--tag',
            action='append',
            default=[],
            choices=sorted(CATALOG),
            help='Feature tag whose checklist is added as context (repeatable)'
        )
        sub.add_argument(
            '--output',
            type=Path,
            help='Write the JSON result to this file instead of stdout'
        )

    subparsers.add_parser('providers', help='Show provider usability and fallback order')

    return parser


def load_settings(args: argparse.Namespace) -> DictConfigStore:
    """Layered settings with command line overrides applied on top."""
    if args.config and not args.config.exists():
        raise FileNotFoundError(f"Config file not found: {args.config}")
    layered = LayeredConfigStore(project_path=args.config) if args.config else LayeredConfigStore()
    settings = DictConfigStore(layered.as_dict())
    if args.provider:
        settings.set(PROVIDER_KEY, args.provider)
    if args.fallback is not None:
        settings.set(FALLBACK_KEY, args.fallback)
    return settings


def load_request(args: argparse.Namespace) -> TaskRequest:
    """Build the TaskRequest for the impact/tests commands."""
    if args.file:
        if not args.file.exists():
            raise FileNotFoundError(f"Source file not found: {args.file}")
        text = args.file.read_text(encoding='utf-8')
    else:
        text = args.text

    kind = TaskKind.IMPACT_ANALYSIS if args.command == 'impact' else TaskKind.TEST_GENERATION
    return TaskRequest(kind=kind, input_text=text, context=build_context(args.tag))


def print_providers(registry: ProviderRegistry, settings: DictConfigStore) -> None:
    rows = registry.describe(settings)
    for row in rows:
        if row["usable"]:
            status = "usable"
        elif row["missing"]:
            status = f"missing: {', '.join(row['missing'])}"
        else:
            status = f"invalid: {', '.join(row['invalid'])}"
        print(f"  {row['provider']:<9} {row['name']:<20} {status}")

    try:
        order = registry.resolve_order(settings)
        print(f"Provider order: {' -> '.join(order)}")
    except NoProviderConfiguredError as e:
        print(f"Provider order: none ({e.details})")


def print_error_summary(error: Exception) -> None:
    """Print machine-readable error summary to stderr."""

    if isinstance(error, AllProvidersFailedError):
        error_report = {
            "error_type": error.kind.value,
            "message": error.summary(),
            "attempts": [
                {
                    "provider": attempt.provider_id,
                    "kind": attempt.error.kind.value if attempt.error else None,
                    "latency_ms": round(attempt.latency_ms, 1),
                }
                for attempt in error.attempts
            ],
        }
    else:
        kind = getattr(error, 'kind', None)
        error_report = {
            "error_type": kind.value if kind is not None else type(error).__name__,
            "message": str(error),
            "details": getattr(error, 'details', None)
        }

    print(json.dumps(error_report, indent=2), file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""

    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        settings = load_settings(args)
        registry = ProviderRegistry()

        if args.command == 'providers':
            print_providers(registry, settings)
            return 0

        request = load_request(args)
        result = Orchestrator(settings, registry).run(request)

        output = result.to_json(indent=2)
        if args.output:
            args.output.write_text(output + "\n", encoding='utf-8')
            print(f"Result written to {args.output}")
        else:
            print(output)
        return 0

    except AllProvidersFailedError as e:
        logger.error(e.summary())
        print_error_summary(e)
        return 1

    except (NoProviderConfiguredError, ConfigInvalidError, QAAnalyzerError,
            ValidationError, ValueError, FileNotFoundError) as e:
        logger.error(f"Invalid configuration or input: {e}")
        print_error_summary(e)
        return 2

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130  # Standard Unix exit code for SIGINT

    except Exception as e:
        logger.exception("Unexpected error occurred")
        print_error_summary(e)
        return 3


if __name__ == '__main__':
    sys.exit(main())
