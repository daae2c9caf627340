"""Subagent worktree diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json

from subagent_mcp.config import SubagentSettings
from subagent_mcp.errors import SubagentError
from subagent_mcp.orchestrator import Orchestrator
from subagent_mcp.processes import AgentFilter


def load_orchestrator(settings: SubagentSettings) -> Orchestrator:
    try:
        return Orchestrator.from_settings(settings)
    except SubagentError as exc:
        print(f"Repository unavailable: {exc}")
        raise SystemExit(1)


def cmd_worktrees(args: argparse.Namespace) -> None:
    orchestrator = load_orchestrator(SubagentSettings())
    try:
        listings = asyncio.run(orchestrator.list_worktrees(include_agents=args.agents))
    except SubagentError as exc:
        print(f"Failed to list worktrees: {exc}")
        raise SystemExit(1)
    if args.json:
        print(json.dumps([listing.to_dict() for listing in listings], indent=2))
        return
    for listing in listings:
        record = listing.worktree
        line = f"- {record.path} (branch: {record.branch or 'unknown'})"
        if listing.agents is not None:
            line += f" - {len(listing.agents)} agent(s)"
        print(line)


def cmd_agents(args: argparse.Namespace) -> None:
    orchestrator = load_orchestrator(SubagentSettings())
    agent_filter = AgentFilter.build(
        only_our_agents=not args.all,
        only_waiting_agents=args.waiting,
        agent_types=args.type or None,
    )
    agents = asyncio.run(orchestrator.list_agents(agent_filter))
    print(json.dumps([agent.to_dict() for agent in agents], indent=2))


def cmd_agent(args: argparse.Namespace) -> None:
    orchestrator = load_orchestrator(SubagentSettings())
    agent = asyncio.run(orchestrator.get_agent(args.pid))
    if agent is None:
        print(f"No agent process with pid {args.pid}")
        raise SystemExit(1)
    print(json.dumps(agent.to_dict(), indent=2))


def cmd_summary(args: argparse.Namespace) -> None:
    orchestrator = load_orchestrator(SubagentSettings())
    summary = asyncio.run(orchestrator.agent_summary())
    print(json.dumps(summary.to_dict(), indent=2))


def cmd_agent_types(args: argparse.Namespace) -> None:
    orchestrator = load_orchestrator(SubagentSettings())
    infos = asyncio.run(orchestrator.describe_agents())
    payload = [
        {**info.to_dict(), "default": info.name == orchestrator.default_agent_type}
        for info in infos
    ]
    print(json.dumps(payload, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Subagent worktree diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_worktrees = sub.add_parser("worktrees", help="List git worktrees")
    p_worktrees.add_argument("--json", action="store_true", help="Output JSON")
    p_worktrees.add_argument(
        "--no-agents",
        dest="agents",
        action="store_false",
        help="Skip the process table scan",
    )
    p_worktrees.set_defaults(func=cmd_worktrees)

    p_agents = sub.add_parser("agents", help="List running agent processes")
    p_agents.add_argument("--all", action="store_true", help="Include agents not spawned by us")
    p_agents.add_argument("--waiting", action="store_true", help="Only agents waiting for input")
    p_agents.add_argument(
        "--type",
        action="append",
        help="Only agents with this process name (repeatable)",
    )
    p_agents.set_defaults(func=cmd_agents)

    p_agent = sub.add_parser("agent", help="Show one agent process by PID")
    p_agent.add_argument("pid", type=int, help="Process ID")
    p_agent.set_defaults(func=cmd_agent)

    p_summary = sub.add_parser("summary", help="Show aggregate agent counters")
    p_summary.set_defaults(func=cmd_summary)

    p_types = sub.add_parser("agent-types", help="Describe registered agent kinds")
    p_types.set_defaults(func=cmd_agent_types)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
