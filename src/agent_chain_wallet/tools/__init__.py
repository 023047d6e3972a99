"""Agent Chain Wallet tools - planner-facing chain operations."""

from agent_chain_wallet.tools.chain_tools import build_chain_tools, register_chain_tools  # noqa: F401
from agent_chain_wallet.tools.registry import Tool, ToolInvocation, ToolRegistry  # noqa: F401
