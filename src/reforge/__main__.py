"""CLI entrypoints for reforge (reforge init, reforge show)."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

import structlog
from pydantic import ValidationError

from reforge.core.config import Settings
from reforge.core.exceptions import (
    ApplyError,
    ArchiveError,
    CommitError,
    ConfigurationError,
    FetchError,
    PlanningError,
    RecordError,
    ReforgeError,
    UnsupportedVariant,
)
from reforge.core.models import Aborted, Agent, ConflictSummary
from reforge.deploy.archive import bundled_pack
from reforge.deploy.engine import deploy
from reforge.deploy.fetch import cache_path_for, fetch_pack
from reforge.deploy.record import RecordStore, serialize_record
from reforge.utils.logging import setup_logging

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_ARCHIVE = 3
EXIT_PLANNING = 4
EXIT_APPLY = 5
EXIT_RECORD = 6


def exit_code_for(error: ReforgeError) -> int:
    if isinstance(error, (UnsupportedVariant, ConfigurationError)):
        return EXIT_USAGE
    if isinstance(error, (ArchiveError, FetchError)):
        return EXIT_ARCHIVE
    if isinstance(error, PlanningError):
        return EXIT_PLANNING
    if isinstance(error, ApplyError):
        return EXIT_APPLY
    if isinstance(error, RecordError):
        return EXIT_RECORD
    return EXIT_FAILURE


def prompt_agent() -> Agent:
    agents = list(Agent)
    print("Select the AI agent for this project:")
    for number, agent in enumerate(agents, start=1):
        print(f"  {number}) {agent.value:<8} {agent.description}")
    while True:
        answer = input(f"Agent [1-{len(agents)}, default 1]: ").strip()
        if not answer:
            return agents[0]
        if answer.isdigit() and 1 <= int(answer) <= len(agents):
            return agents[int(answer) - 1]
        try:
            return Agent.parse(answer)
        except UnsupportedVariant as e:
            print(e)


def confirm_overwrite(summary: ConflictSummary) -> bool:
    print(f"{summary.count} of {summary.total_files} template file(s) already exist:")
    for path in summary.paths:
        print(f"   {path}")
    answer = input("Do you want to overwrite the existing files? [y/N] ").strip().lower()
    return answer in {"y", "yes"}


def resolve_pack_source(pack: Optional[str], settings: Settings):
    """Return (archive source, package url) for the pack to deploy."""
    url = pack if pack and pack.startswith(("http://", "https://")) else None
    if pack and url is None:
        return Path(pack), None
    url = url or settings.pack_url
    if url:
        dest = fetch_pack(
            url,
            cache_path_for(url, settings.cache_dir),
            max_size_bytes=settings.max_pack_size_bytes,
            total_timeout_sec=settings.fetch_timeout_seconds,
            max_retries=settings.fetch_max_retries,
        )
        return dest, url
    if settings.pack_path:
        return settings.pack_path, None
    return bundled_pack(), None


AGENT_SETUP_HINTS = {
    Agent.COPILOT: "Make sure GitHub Copilot is enabled in your editor",
    Agent.CLAUDE: "Make sure Claude Code is installed and configured",
}


def display_next_steps(agent: Agent, record_path: Path) -> None:
    print()
    print("Next steps:")
    print(f"   1. Review the generated {record_path.name} configuration")
    print("   2. Customize the deployed templates as needed")
    print("   3. Start using your AI agent with the configured templates")
    print(f"   4. {AGENT_SETUP_HINTS[agent]}")


def cmd_init(args: argparse.Namespace, settings: Settings) -> int:
    agent = Agent.parse(args.agent) if args.agent else prompt_agent()
    source, package_url = resolve_pack_source(args.pack, settings)
    interactive = sys.stdin.isatty()

    outcome = deploy(
        source,
        agent,
        args.output_directory,
        force=args.force,
        confirm=confirm_overwrite if interactive else None,
        project_name=args.project_name,
        package_url=package_url,
        settings=settings,
    )
    if isinstance(outcome, Aborted):
        print(f"{outcome.reason}; nothing was changed.")
        if not interactive:
            print("Re-run with --force to overwrite existing files.")
        return EXIT_OK

    print(f"Deployed {len(outcome.written)} {agent.value} template file(s):")
    for path in outcome.written:
        print(f"   {path}")
    print(f"Wrote configuration to {outcome.record_path}")
    display_next_steps(agent, outcome.record_path)
    return EXIT_OK


def cmd_show(args: argparse.Namespace, settings: Settings) -> int:
    record = RecordStore(settings.record_filename).read(Path(args.directory))
    sys.stdout.write(serialize_record(record))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reforge",
        description="Deploy prompt templates for GitHub Copilot or Claude Code into a project",
    )
    sub = parser.add_subparsers(dest="cmd")

    cmd = sub.add_parser("init", help="Deploy agent templates and write .reforge.json")
    cmd.add_argument("-a", "--agent", help=f"Agent to configure ({', '.join(Agent.names())})")
    cmd.add_argument("-o", "--output-directory", default=".", help="Project directory (default: .)")
    cmd.add_argument("-p", "--project-name", help="Project name stored in the configuration")
    cmd.add_argument("-f", "--force", action="store_true", help="Overwrite existing files without asking")
    cmd.add_argument("--pack", help="Template pack zip path or URL (default: bundled pack)")

    cmd = sub.add_parser("show", help="Print the deployment record of a project")
    cmd.add_argument("directory", nargs="?", default=".", help="Project directory (default: .)")
    return parser


def main(argv: Optional[list] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.cmd is None:
        parser.print_help()
        return EXIT_USAGE

    try:
        settings = Settings()
    except ValidationError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return EXIT_USAGE
    setup_logging(settings.log_level, settings.log_format)

    handlers = {"init": cmd_init, "show": cmd_show}
    try:
        return handlers[args.cmd](args, settings)
    except CommitError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Files already replaced:", file=sys.stderr)
        for path in e.committed:
            print(f"   {path}", file=sys.stderr)
        print("Files left unchanged:", file=sys.stderr)
        for path in e.pending:
            print(f"   {path}", file=sys.stderr)
        return EXIT_APPLY
    except RecordError as e:
        print(f"Error: {e}", file=sys.stderr)
        if e.deployed:
            print(f"{len(e.deployed)} template file(s) were deployed without a matching record.", file=sys.stderr)
        return EXIT_RECORD
    except ReforgeError as e:
        logger.debug("Command failed", error=str(e), code=e.code)
        print(f"Error: {e}", file=sys.stderr)
        return exit_code_for(e)
    except KeyboardInterrupt:
        print("Operation cancelled by user", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
