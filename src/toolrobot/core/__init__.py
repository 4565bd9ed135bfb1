"""Core components for tool-using conversations.

This module provides the expression parser, the tool registry and invoker, the orchestration strategies,
and the Director that drives a provider to a final answer.
"""

from .base import CallableWithSignature, Provider, ToolUseStrategy
from .director import Director, DirectorConfig, Directive, build_advertisement_message, invoke
from .exceptions import (
    LoopDetected,
    ParseError,
    ProviderError,
    ToolExecutionError,
    ToolRobotError,
    TurnBudgetExceeded,
    TypeCoercionError,
    UnresolvedFunction,
)
from .expression import parse_call
from .history import CallHistory
from .provider import ChatCompletionsProvider
from .registry import CallStatus, Error, Invoker, Recalled, Success, ToolRegistry
from .strategy import BackAndForth, FillInTheBlank, OrchestrationResult, ToolResultAction
from .template import ResponseTemplate
from .tool import Tool, ToolSignature, function_signature, tool

__all__ = [
    # Base protocols
    "CallableWithSignature",
    "Provider",
    "ToolUseStrategy",
    # Parsing and invocation
    "parse_call",
    "CallHistory",
    "CallStatus",
    "Error",
    "Invoker",
    "Recalled",
    "Success",
    "ToolRegistry",
    "ResponseTemplate",
    # Strategies
    "BackAndForth",
    "FillInTheBlank",
    "OrchestrationResult",
    "ToolResultAction",
    # Director and providers
    "ChatCompletionsProvider",
    "Director",
    "DirectorConfig",
    "Directive",
    "build_advertisement_message",
    "invoke",
    # Tools
    "Tool",
    "ToolSignature",
    "function_signature",
    "tool",
    # Exceptions
    "LoopDetected",
    "ParseError",
    "ProviderError",
    "ToolExecutionError",
    "ToolRobotError",
    "TurnBudgetExceeded",
    "TypeCoercionError",
    "UnresolvedFunction",
]
