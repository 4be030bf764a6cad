"""
streamgate - LMArena Provider

History only: LMArena conversations can be listed with the session cookie,
but sending messages is not supported.
"""

from typing import List

from .base import BaseProvider, Capability
from .history import StructuredHistory
from ..core.models import ConversationSummary, Model


class LMArenaProvider(BaseProvider):
    """LMArena conversation history."""

    name = "lmarena"
    BASE_URL = "https://lmarena.ai"
    DEFAULT_MODEL = "gpt-4o"
    CAPABILITIES = frozenset({Capability.LIST_MODELS, Capability.LIST_CONVERSATIONS})
    BROWSER_SESSION = True

    FALLBACK_MODELS = (
        Model(id="gpt-4o", name="GPT-4o", context_length=128000),
    )

    history = StructuredHistory(
        id_keys=("id", "conversation_id", "_id"),
        title_keys=("title", "name"),
    )

    def is_model_supported(self, model_id: str) -> bool:
        return False

    async def _list_conversations(self, credential: str, limit: int) -> List[ConversationSummary]:
        data = await self.http.request_json(
            "GET",
            "/api/history/list",
            "lmarena_list_conversations",
            params={"limit": limit},
            headers={"Cookie": credential, "Accept": "application/json"},
        )
        items = data.get("history") if isinstance(data, dict) else None
        return self.history.parse(items or [], limit)
