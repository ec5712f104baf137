"""DTO describing one tool call recovered from model output.

The call carries the declared tool name and a JSON-like arguments mapping
whose keys keep the order in which the parameters appeared.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class ExtractedToolCall(BaseModel):
    """A tool call extracted from an XML fragment.

    Parameters
    ----------
    name:
        Declared tool name (canonical spelling, not the spelling in the text).
    arguments:
        Ordered arguments mapping. Leaves are ``str``, ``int``, ``float``,
        ``bool`` or ``None``; repeated parameters are lists.

    Notes
    -----
    - Instances are frozen; build a new one instead of mutating.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)

    def arguments_json(self) -> str:
        """Arguments serialized the way OpenAI-style clients expect them."""
        return json.dumps(self.arguments, ensure_ascii=False)


__all__ = ["ExtractedToolCall"]
