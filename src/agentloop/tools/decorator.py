"""Tool decorator.

This module provides the `@tool` decorator that turns a Python function into an `AgentTool`. The tool specification
is derived from the function signature, type hints and docstring, and inputs proposed by the model are validated
against a pydantic model built from the same signature.

Example:
    ```python
    from agentloop import tool

    @tool
    def get_weather(city: str, unit: str = "celsius") -> str:
        '''Get the current weather for a city.

        Args:
            city: Name of the city.
            unit: Temperature unit.
        '''
        return f"Sunny in {city}"
    ```
"""

import asyncio
import functools
import inspect
import logging
from typing import Any, Callable, Generic, Optional, TypeVar, Union, get_type_hints, overload

import docstring_parser
from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from ..types.tools import AgentTool, JSONSchema, ToolContext, ToolSpec, ToolUse

logger = logging.getLogger(__name__)

P = TypeVar("P")
R = TypeVar("R")

_CONTEXT_PARAMETER = "tool_context"


class FunctionToolMetadata:
    """Metadata extracted from a decorated function.

    Builds the pydantic input model and the tool specification, and validates model-proposed inputs.
    """

    def __init__(self, func: Callable[..., Any], name: Optional[str] = None, description: Optional[str] = None):
        """Initialize with the function to inspect.

        Args:
            func: The function to extract metadata from.
            name: Tool name override.
            description: Tool description override.
        """
        self.func = func
        self.signature = inspect.signature(func)
        self.type_hints = get_type_hints(func)
        self.name = name or func.__name__

        doc = docstring_parser.parse(inspect.getdoc(func) or "")
        self.arg_descriptions = {
            param.arg_name: " ".join(param.description.split()) for param in doc.params if param.description
        }
        summary = "\n\n".join(part for part in (doc.short_description, doc.long_description) if part)
        self.description = description or summary or self.name
        self.accepts_context = _CONTEXT_PARAMETER in self.signature.parameters

        self.input_model = self._create_input_model()

    def _create_input_model(self) -> type[BaseModel]:
        """Create a pydantic model from the function signature."""
        field_definitions: dict[str, Any] = {}

        for param_name, param in self.signature.parameters.items():
            if param_name in ("self", "cls", _CONTEXT_PARAMETER):
                continue
            if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                continue

            param_type = self.type_hints.get(param_name, Any)
            default = ... if param.default is inspect.Parameter.empty else param.default
            description = self.arg_descriptions.get(param_name, f"Parameter {param_name}")
            field_definitions[param_name] = (param_type, Field(default=default, description=description))

        model_name = "".join(part.capitalize() for part in self.name.split("_")) + "Tool"
        return create_model(model_name, __config__=ConfigDict(extra="forbid"), **field_definitions)

    def extract_metadata(self) -> ToolSpec:
        """Build the tool specification advertised to the model.

        Returns:
            The tool specification.
        """
        schema: JSONSchema = self.input_model.model_json_schema()
        schema.pop("title", None)
        for property_schema in schema.get("properties", {}).values():
            property_schema.pop("title", None)
        schema.setdefault("required", [])

        return {"name": self.name, "description": self.description, "inputSchema": {"json": schema}}

    def validate_input(self, input_data: Any) -> dict[str, Any]:
        """Validate a model-proposed input against the function signature.

        Args:
            input_data: The input from the tool use.

        Returns:
            The validated keyword arguments.

        Raises:
            ValueError: If the input does not match the signature.
        """
        if not isinstance(input_data, dict):
            raise ValueError(f"tool_name=<{self.name}> | tool input must be an object")
        try:
            validated = self.input_model(**input_data)
        except ValidationError as e:
            raise ValueError(f"tool_name=<{self.name}> | invalid tool input: {e}") from e
        return {name: getattr(validated, name) for name in type(validated).model_fields}


class DecoratedFunctionTool(AgentTool, Generic[P, R]):
    """An `AgentTool` wrapping a decorated function.

    The wrapper stays callable like the original function.
    """

    def __init__(self, func: Callable[..., R], metadata: FunctionToolMetadata):
        """Initialize the decorated tool.

        Args:
            func: The original function.
            metadata: The metadata extracted from it.
        """
        super().__init__()
        self._func = func
        self._metadata = metadata
        self._tool_spec = metadata.extract_metadata()
        functools.update_wrapper(wrapper=self, wrapped=func)

    def __call__(self, *args: Any, **kwargs: Any) -> R:
        """Call the original function directly."""
        return self._func(*args, **kwargs)

    @property
    def tool_name(self) -> str:
        """The tool name."""
        return self._metadata.name

    @property
    def tool_spec(self) -> ToolSpec:
        """The tool specification derived from the function."""
        return self._tool_spec

    @property
    def tool_type(self) -> str:
        """The tool type."""
        return "function"

    @property
    def original_function(self) -> Callable[..., R]:
        """The undecorated function."""
        return self._func

    def validate_input(self, tool_input: Any) -> dict[str, Any]:
        """Validate the input against the function signature."""
        return self._metadata.validate_input(tool_input)

    async def invoke(self, tool_use: ToolUse, tool_context: ToolContext) -> Any:
        """Call the function with the tool use input.

        Coroutine functions are awaited. Plain functions run in a worker thread so that they do not block the
        event loop.

        Args:
            tool_use: The tool use with its validated input.
            tool_context: Context for the invocation, injected when the function declares `tool_context`.

        Returns:
            The function's return value.
        """
        kwargs = dict(tool_use["input"])
        if self._metadata.accepts_context:
            kwargs[_CONTEXT_PARAMETER] = tool_context

        if inspect.iscoroutinefunction(self._func):
            return await self._func(**kwargs)
        return await asyncio.to_thread(self._func, **kwargs)


@overload
def tool(__func: Callable[..., R]) -> DecoratedFunctionTool[Any, R]: ...


@overload
def tool(
    *, name: Optional[str] = None, description: Optional[str] = None
) -> Callable[[Callable[..., R]], DecoratedFunctionTool[Any, R]]: ...


def tool(
    func: Optional[Callable[..., R]] = None,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> Union[DecoratedFunctionTool[Any, R], Callable[[Callable[..., R]], DecoratedFunctionTool[Any, R]]]:
    """Decorator that turns a function into a tool.

    Can be used bare (`@tool`) or with arguments (`@tool(name="lookup")`).

    Args:
        func: The function to decorate.
        name: Tool name, defaults to the function name.
        description: Tool description, defaults to the docstring summary.

    Returns:
        The decorated tool, or a decorator when called with arguments only.
    """

    def decorator(f: Callable[..., R]) -> DecoratedFunctionTool[Any, R]:
        metadata = FunctionToolMetadata(f, name=name, description=description)
        return DecoratedFunctionTool(f, metadata)

    if func is None:
        return decorator
    return decorator(func)
