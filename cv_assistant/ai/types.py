from dataclasses import dataclass
from typing import Any, Literal, Protocol, Sequence


Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str


class AIClient(Protocol):
    async def complete_json(
        self,
        messages: Sequence[ChatMessage],
        *,
        prompt_name: str,
        temperature: float = 0.2,
        max_output_tokens: int = 1800,
    ) -> dict[str, Any]: ...
