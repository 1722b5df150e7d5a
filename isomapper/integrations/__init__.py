"""
Integrations with third-party libraries like Pydantic and FastAPI.
"""

from .pydantic import from_dataclass, PydanticIso20022Message
from .fastapi import get_iso20022_message

__all__ = ["from_dataclass", "PydanticIso20022Message", "get_iso20022_message"]
