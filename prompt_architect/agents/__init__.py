"""
Prompt Architect Agents Module

The fixed, ordered directory of analysis agents.
"""

from .directory import AgentDirectory, AgentDirectoryEntry, AGENT_DIRECTORY, AGENT_ENTRIES

__all__ = [
    "AgentDirectory",
    "AgentDirectoryEntry",
    "AGENT_DIRECTORY",
    "AGENT_ENTRIES",
]
