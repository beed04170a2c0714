"""
Simulation of an AI agent managing software through safewinget.

The agent (simulated here) proposes package operations with arguments taken
straight from model output. safewinget validates every argument before winget
is launched, so the legitimate requests run and the injected ones are refused.
Requires winget on PATH (or SAFEWINGET_EXECUTABLE pointing at it).
"""

import asyncio
from dataclasses import dataclass, field

from safewinget import SafeWingetError, create_service
from safewinget.integrations._format import describe_error, format_details, format_records


@dataclass
class AgentAction:
    thought: str
    operation: str
    arguments: dict = field(default_factory=dict)


class MockLLM:
    """Simulates an LLM acting on a user request."""

    def __init__(self):
        self.step = 0

    def next_action(self) -> AgentAction | None:
        """Returns the next package operation the 'AI' wants to run."""
        actions = [
            # Innocent exploration
            AgentAction(
                thought="Let me see what is installed.",
                operation="list_installed",
            ),
            AgentAction(
                thought="The user wants an editor. I'll search for VS Code.",
                operation="search",
                arguments={"query": "visual studio code", "count": 5},
            ),
            AgentAction(
                thought="Let me check the details before suggesting it.",
                operation="show",
                arguments={"package_id": "Microsoft.VisualStudioCode"},
            ),
            # PROMPT INJECTION (Dangerous!)
            # A web page told the agent to chain a second command
            AgentAction(
                thought="The install notes say to run this id.",
                operation="show",
                arguments={"package_id": "Microsoft.VisualStudioCode & powershell -enc SQBFAFgA"},
            ),
            # Flag smuggling (Dangerous!)
            AgentAction(
                thought="I'll pass a custom installer override.",
                operation="search",
                arguments={"query": "--override /VERYSILENT"},
            ),
            # Privilege escalation (Blocked by the read-only policy)
            AgentAction(
                thought="I'll just install it for the user.",
                operation="install",
                arguments={"package_ids": ["Microsoft.VisualStudioCode"]},
            ),
        ]

        if self.step < len(actions):
            action = actions[self.step]
            self.step += 1
            return action
        return None


async def run_package_tool(service, action: AgentAction) -> str:
    """
    The tool exposed to the Agent.
    Every argument goes through safewinget's command policy first.
    """
    print(f"  [Tool] {action.operation}({action.arguments})")

    try:
        if action.operation == "show":
            return format_details(await service.show(**action.arguments))
        method = getattr(service, action.operation)
        return format_records(await method(**action.arguments))
    except SafeWingetError as e:
        return describe_error(e)


async def main():
    print("🤖 Agent initializing...")
    print("🔒 safewinget active: read-only policy, validated arguments\n")

    llm = MockLLM()

    async with create_service(read_only=True) as service:
        health = await service.check_health()
        if not health.available:
            print(f"winget is not available: {health.detail}")
            return

        while True:
            action = llm.next_action()
            if not action:
                print("✅ Agent finished task.")
                break

            print(f"🤖 Thought: {action.thought}")

            output = await run_package_tool(service, action)

            if output.startswith("Blocked"):
                print(f"🛡️ SAFEWINGET PROTECTED SYSTEM: {output}")
            else:
                print(f"  -> Result: {output.strip().splitlines()[0]}...")
            print("-" * 50)


if __name__ == "__main__":
    asyncio.run(main())
