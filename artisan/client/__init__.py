# artisan/client/__init__.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Client layer for the game API.

Module structure:
- errors.py: typed transport errors and classification
- cooldown.py: cooldown clock helpers
- transport.py: authenticated HTTP conduit
- executor.py: retry and cooldown policy
- actions.py: one method per in-game verb
"""

from .actions import ActionClient
from .errors import (
    AlreadyAtDestination,
    CharacterDead,
    CharacterNotFound,
    CooldownError,
    ErrorKind,
    InventoryFull,
    MissingItem,
    MonsterNotFound,
    NoResource,
    RateLimited,
    ResourceNotFound,
    TransportError,
    classify_error,
)
from .executor import ErrorDecision, execute_with_cooldown, run_action
from .transport import Transport

__all__ = [
    "ActionClient",
    "Transport",
    # Errors
    "AlreadyAtDestination",
    "CharacterDead",
    "CharacterNotFound",
    "CooldownError",
    "ErrorKind",
    "InventoryFull",
    "MissingItem",
    "MonsterNotFound",
    "NoResource",
    "RateLimited",
    "ResourceNotFound",
    "TransportError",
    "classify_error",
    # Executor
    "ErrorDecision",
    "execute_with_cooldown",
    "run_action",
]
