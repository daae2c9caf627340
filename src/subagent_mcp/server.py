"""FastMCP server bootstrap for subagent worktree management."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastmcp import Context, FastMCP

from . import __version__
from .config import SubagentSettings, get_settings
from .orchestrator import Orchestrator
from .tools import register_tools


def configure_logging(level: str) -> None:
    """Configure root logging for the server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def build_status_payload(
    settings: SubagentSettings,
    orchestrator: Orchestrator,
    request_id: Any = None,
) -> dict[str, Any]:
    """Summarize runtime state without touching git or the process table."""

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "server_version": __version__,
        "log_level": settings.log_level,
        "repository": {
            "root": str(orchestrator.store.root),
            "worktree_parent": str(orchestrator.store.root.parent),
        },
        "agents": {
            "default": orchestrator.default_agent_type,
            "registered": orchestrator.registry.names(),
            "definition_paths": [str(path) for path in settings.agent_paths],
        },
        "request_id": request_id,
    }


def create_server(
    settings: Optional[SubagentSettings] = None,
    orchestrator: Orchestrator | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server bound to one repository."""

    settings = settings or get_settings()
    orchestrator = orchestrator or Orchestrator.from_settings(settings)

    if orchestrator.default_agent_type not in orchestrator.registry:
        logging.getLogger(__name__).warning(
            "Default agent type is not registered",
            extra={
                "default_agent_type": orchestrator.default_agent_type,
                "registered": orchestrator.registry.names(),
            },
        )

    server = FastMCP(
        name="Subagent Worktree MCP",
        version=__version__,
        instructions=(
            "Spawns coding subagents in isolated git worktrees next to the repository, "
            "lists worktrees with the agent processes running in them, and cleans them up. "
            "cleanup_worktree is destructive."
        ),
    )

    handles = register_tools(server, orchestrator=orchestrator)

    @server.resource(
        "resource://subagent/status",
        name="subagent_status",
        description="Provides the current runtime status for the subagent worktree server.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing basic runtime state."""

        payload = build_status_payload(
            settings,
            orchestrator,
            request_id=getattr(context, "request_id", None),
        )
        return json.dumps(payload)

    setattr(server, "orchestrator", orchestrator)
    setattr(server, "tool_handles", handles)
    return server


def main() -> None:
    """Entry point for running the subagent MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    orchestrator: Orchestrator = getattr(server, "orchestrator")
    logging.getLogger(__name__).info(
        "Launching subagent MCP server for repository %s",
        orchestrator.store.root,
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "agent_types": orchestrator.registry.names(),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
