"""Tool catalog for the executor agents.

The catalog lists the tool servers the executors may call and the tools
each server publishes. Only enabled servers contribute tools. The catalog
is read from a YAML file:

    servers:
      - id: weather-local
        name: Weather Server
        url: http://127.0.0.1:5001/mcpWeatherServer
        enabled: true
        tools:
          - name: get_current_weather
            description: Current conditions for a location
            inputSchema:
              type: object
              properties: {location: {type: string}}
              required: [location]
"""

import logging
from pathlib import Path
from typing import Optional, List, Iterable

import yaml
from pydantic import Field

from multiagent.models.tools import AgentModel, ToolDescriptor

logger = logging.getLogger(__name__)

# Default tool catalog file path
DEFAULT_CATALOG_PATH = "tools.yaml"


class ToolServer(AgentModel):
    """A server publishing callable tools."""
    id: str
    name: str
    description: str = ""
    url: str = ""
    enabled: bool = True
    tools: List[ToolDescriptor] = Field(default_factory=list)


class ToolCatalog:
    """Read-only view of the available tools, plus server switching."""

    def __init__(self, servers: Optional[List[ToolServer]] = None):
        self._servers: List[ToolServer] = []
        for server in servers or []:
            self._servers.append(self._stamp(server))

    @staticmethod
    def _stamp(server: ToolServer) -> ToolServer:
        """Make every tool point back at the server that provides it."""
        for tool in server.tools:
            tool.server_id = server.id
        return server

    @classmethod
    def from_yaml(cls, path: Optional[str] = None) -> "ToolCatalog":
        """Load the catalog from a YAML file; empty when the file is missing."""
        catalog_path = Path(path or DEFAULT_CATALOG_PATH)
        if not catalog_path.exists():
            logger.info(f"No tool catalog found at {catalog_path}, starting empty")
            return cls()

        try:
            with open(catalog_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
            servers = [ToolServer.model_validate(s) for s in data.get('servers', [])]
        except Exception as e:
            logger.error(f"Failed to load tool catalog: {e}")
            return cls()

        catalog = cls(servers)
        logger.info(
            f"Loaded {len(servers)} tool servers, "
            f"{len(catalog.get_available_tools())} tools available"
        )
        return catalog

    def get_servers(self) -> List[ToolServer]:
        return list(self._servers)

    def get_enabled_servers(self) -> List[ToolServer]:
        return [s for s in self._servers if s.enabled]

    def get_available_tools(self) -> List[ToolDescriptor]:
        """Tools of every enabled server, in server order."""
        tools: List[ToolDescriptor] = []
        for server in self.get_enabled_servers():
            tools.extend(server.tools)
        return tools

    def filter_tools(self, names: Iterable[str]) -> List[ToolDescriptor]:
        """Available tools whose names are in names, in catalog order."""
        wanted = set(names)
        return [t for t in self.get_available_tools() if t.name in wanted]

    def toggle_server(self, server_id: str, enabled: bool) -> bool:
        """Enable or disable a server. Returns False if it is unknown."""
        for server in self._servers:
            if server.id == server_id:
                server.enabled = enabled
                logger.info(f"Tool server {server_id} {'enabled' if enabled else 'disabled'}")
                return True
        logger.warning(f"Tool server not found: {server_id}")
        return False

    def add_server(self, server: ToolServer) -> None:
        if any(s.id == server.id for s in self._servers):
            raise ValueError(f"Tool server already registered: {server.id}")
        self._servers.append(self._stamp(server))

    def remove_server(self, server_id: str) -> bool:
        before = len(self._servers)
        self._servers = [s for s in self._servers if s.id != server_id]
        return len(self._servers) < before


# Global catalog instance
_tool_catalog: Optional[ToolCatalog] = None


def get_tool_catalog(path: Optional[str] = None) -> ToolCatalog:
    """
    Get or create the global tool catalog.

    Args:
        path: Path to the catalog YAML. Only used on first call.
    """
    global _tool_catalog

    if _tool_catalog is None:
        _tool_catalog = ToolCatalog.from_yaml(path)

    return _tool_catalog


def reset_tool_catalog() -> None:
    """Reset the global tool catalog (useful for testing)."""
    global _tool_catalog
    _tool_catalog = None
