"""Command-line entry point: fetch, select everything, generate one draft.

Usage:
    release-builder --provider github --source acme/api --lookback-days 14
    release-builder --provider jira --source PROJ --status open --title "Sprint 42"

Prints the created draft record as JSON. Useful for trying a provider
configuration without running the API server.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from release_builder.config import load_config
from release_builder.errors import BuilderError
from release_builder.logging_config import setup_logging
from release_builder.schemas import Actor, DraftRecord, JiraStatus, Provider, Tone
from release_builder.session import BuilderServices, BuilderSession

# Provider -> name of the filter field holding the source selector
SELECTOR_FIELDS: dict[Provider, str] = {
    Provider.GITHUB: "repository",
    Provider.JIRA: "project_key",
    Provider.LINEAR: "team_id",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Release Builder")
    parser.add_argument("--provider", "-p", choices=[p.value for p in Provider], required=True)
    parser.add_argument(
        "--source", "-s", required=True,
        help="Repository (owner/name), Jira project key or Linear team id",
    )
    parser.add_argument("--lookback-days", type=int, default=None)
    parser.add_argument("--status", choices=[s.value for s in JiraStatus], help="Jira only")
    parser.add_argument("--state-type", help="Linear only, e.g. completed")
    parser.add_argument("--title", help="Release note title (defaults to the seeded title)")
    parser.add_argument("--tone", choices=[t.value for t in Tone], default=Tone.PROFESSIONAL.value)
    parser.add_argument("--company-details", default="")
    parser.add_argument("--user-id", default="cli")
    parser.add_argument("--config", "-c", help="Path to a YAML config file")
    return parser


async def run(args: argparse.Namespace) -> DraftRecord:
    config = load_config(args.config)
    provider = Provider(args.provider)
    session = BuilderSession(
        Actor(user_id=args.user_id),
        BuilderServices.from_config(config),
        lookback_days=config.default_lookback_days,
    )
    session.set_provider(provider)

    changes: dict[str, object] = {SELECTOR_FIELDS[provider]: args.source}
    if args.lookback_days is not None:
        changes["lookback_days"] = args.lookback_days
    if provider == Provider.JIRA and args.status:
        changes["status"] = args.status
    if provider == Provider.LINEAR and args.state_type:
        changes["state_type"] = args.state_type
    session.update_filter(provider, changes)

    await session.fetch_items()
    session.set_generation_inputs(
        title=args.title,
        tone=Tone(args.tone),
        company_details=args.company_details,
    )
    return await session.generate_draft()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    try:
        record = asyncio.run(run(args))
    except (BuilderError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    print(record.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
