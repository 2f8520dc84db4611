"""
Tools — session, folder and provisioning logic.

Each component has its own module with the implementation logic.
server.py and cli.py provide thin wrappers that call into AppContext.

Components:
- session: identity-session state machine (sign in, restore, sign out)
- folders: list / suggest / create / resolve the target folder
- provision: folder → copy → patch transaction
- context: wires the above and owns the application state
"""

from .session import SessionManager
from .folders import FolderResolver, choice_from_args, suggest
from .provision import Orchestrator
from .context import AppContext

__all__ = [
    "SessionManager", "FolderResolver", "choice_from_args", "suggest", "Orchestrator", "AppContext",
]
