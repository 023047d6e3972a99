"""Tool registry - the only surface an external planner talks to.

Every tool has a pydantic request model and a handler. The registry
validates raw parameters against the model, runs the handler, and lowers
any error into a descriptive string. Nothing raised by a handler crosses
this boundary.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from agent_chain_wallet.errors import ValidationError, WalletNotConfiguredError

logger = logging.getLogger("agent_chain_wallet.tools.registry")

ToolResult = Union[str, dict, list]


class ToolParams(BaseModel):
    """Base for tool request models. Unknown fields are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class NoParams(ToolParams):
    pass


@dataclass
class ToolDefinition:
    name: str
    description: str
    parameters: dict[str, Any]

    def to_function(self) -> dict:
        """OpenAI-style function-calling entry."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class ToolInvocation:
    """One call through the registry. Never persisted."""

    name: str
    params: dict[str, Any]
    result: ToolResult
    succeeded: bool

    @property
    def text(self) -> str:
        if isinstance(self.result, str):
            return self.result
        return json.dumps(self.result, indent=2, default=str)


def _describe_validation(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "params"
        msg = err.get("msg", "invalid value").removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}")
    return "; ".join(parts)


@dataclass
class Tool:
    name: str
    description: str
    params_model: type[ToolParams]
    func: Callable[..., Any] | Callable[..., Awaitable[Any]]
    error_prefix: str = "Tool error"
    is_async: bool = False
    # Runs before validation; raises e.g. WalletNotConfiguredError
    guard: Callable[[], None] | None = None

    @property
    def parameters(self) -> dict[str, Any]:
        return self.params_model.model_json_schema(by_alias=True)

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )

    def validate(self, params: Any) -> ToolParams:
        """Parse raw planner parameters into the tool's request model.

        Raises ``ValidationError`` with a readable summary.
        """
        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise ValidationError(
                f"Invalid input for {self.name}: expected an object, got {type(params).__name__}"
            )
        try:
            return self.params_model.model_validate(params)
        except PydanticValidationError as exc:
            raise ValidationError(
                f"Invalid input for {self.name}: {_describe_validation(exc)}"
            ) from exc

    async def run(self, params: Any) -> ToolInvocation:
        """Validate, run and lower errors. Never raises ``Exception``."""
        raw = params if isinstance(params, dict) else {}
        try:
            if self.guard is not None:
                self.guard()
            request = self.validate(params)
            if self.is_async:
                result = await self.func(request)
            else:
                result = await asyncio.to_thread(self.func, request)
        except ValidationError as exc:
            return ToolInvocation(self.name, raw, str(exc), succeeded=False)
        except WalletNotConfiguredError as exc:
            return ToolInvocation(self.name, raw, str(exc), succeeded=False)
        except Exception as exc:
            logger.warning(f"Tool {self.name} failed: {exc}")
            return ToolInvocation(self.name, raw, f"{self.error_prefix}: {exc}", succeeded=False)
        return ToolInvocation(self.name, raw, result, succeeded=True)

    async def execute(self, **kwargs) -> str:
        return (await self.run(kwargs)).text


class ToolRegistry:
    """Maps tool names to request models and handlers."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def get_tools(self, names: list[str] | None = None) -> list[Tool]:
        if names is None:
            return list(self._tools.values())
        return [self._tools[n] for n in names if n in self._tools]

    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    def definitions(self) -> list[ToolDefinition]:
        return [t.to_definition() for t in self._tools.values()]

    def tool(
        self,
        name: str,
        description: str,
        params_model: type[ToolParams] = NoParams,
        error_prefix: str = "Tool error",
        guard: Callable[[], None] | None = None,
    ):
        """Decorator to register a function as a tool.

        Usage:
            @registry.tool("get_block_number", "Get the current block number")
            def get_block_number(params: NoParams) -> str:
                ...
        """

        def decorator(func: Callable) -> Callable:
            self.register(
                Tool(
                    name=name,
                    description=description,
                    params_model=params_model,
                    func=func,
                    error_prefix=error_prefix,
                    is_async=inspect.iscoroutinefunction(func),
                    guard=guard,
                )
            )
            return func

        return decorator

    async def invoke(self, name: str, params: Any = None) -> ToolInvocation:
        """Run tool *name* with a raw parameter bag from the planner."""
        tool = self._tools.get(name)
        if tool is None:
            return ToolInvocation(
                name,
                params if isinstance(params, dict) else {},
                f"Error: Unknown tool '{name}'",
                succeeded=False,
            )
        return await tool.run(params)

    async def execute(self, name: str, params: Any = None) -> str:
        """Like :meth:`invoke` but returns only the planner-facing text."""
        return (await self.invoke(name, params)).text
