from .actor import ActorState, SymbolActor
from .events import SymbolEventRequest, SymbolEventResponse
from .identifier import MechaCodeSymbolThinking, Snippet, SymbolIdentifier, UserContext
from .locker import SymbolLocker
from .manager import SymbolManager
from .toolbox import ToolBox
from .tracker import SymbolTracker

__all__ = [
    "ActorState",
    "SymbolActor",
    "SymbolEventRequest",
    "SymbolEventResponse",
    "MechaCodeSymbolThinking",
    "Snippet",
    "SymbolIdentifier",
    "UserContext",
    "SymbolLocker",
    "SymbolManager",
    "ToolBox",
    "SymbolTracker",
]
