"""Framework integrations for safewinget.

Import the submodule for the framework you use; each needs its optional extra.
"""

from safewinget.integrations.langchain import HAS_LANGCHAIN, create_langchain_tools

__all__ = ["HAS_LANGCHAIN", "create_langchain_tools"]
