"""Codeact execution host: sandbox, bridges, runtime environments and executor."""

from codeact.executor.bridges import GuestLogger, InMemoryState, StateBridge, StateStore, ToolRegistryBridge
from codeact.executor.environment import PythonEnvironment, RuntimeEnvironment, get_environment
from codeact.executor.executor import CodeExecutor
from codeact.executor.sandbox import GuestInterrupted, GuestSandbox, SandboxConfig, SandboxOutcome

__all__ = [
    "CodeExecutor",
    "GuestInterrupted",
    "GuestLogger",
    "GuestSandbox",
    "InMemoryState",
    "PythonEnvironment",
    "RuntimeEnvironment",
    "SandboxConfig",
    "SandboxOutcome",
    "StateBridge",
    "StateStore",
    "ToolRegistryBridge",
    "get_environment",
]
