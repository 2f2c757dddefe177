"""Browse, search and resume Codex sessions from the terminal."""

from cxresume.types import Action, DialogTurn, SessionFileRef, SessionId, SessionMeta, SessionSummary

__version__ = "0.4.0"

__all__ = [
    "Action",
    "DialogTurn",
    "SessionFileRef",
    "SessionId",
    "SessionMeta",
    "SessionSummary",
    "__version__",
]
