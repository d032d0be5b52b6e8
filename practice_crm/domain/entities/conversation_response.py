"""Conversation response entity."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional


@dataclass(frozen=True)
class ConversationResponse:
    """One answer within the scripted intake conversation."""

    question_id: str
    question: str  # display text, denormalized at answer time
    response: str  # display text
    response_value: Optional[str]  # normalized value used for branching
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize to the stored JSON shape.

        Returns:
            Dictionary with question/response/responseValue/timestamp keys
        """
        return {
            "question": self.question,
            "response": self.response,
            "responseValue": self.response_value,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, question_id: str, data: dict[str, Any]) -> "ConversationResponse":
        """
        Deserialize from the stored JSON shape.

        Args:
            question_id: Key the entry was stored under
            data: Stored dictionary

        Returns:
            ConversationResponse entity
        """
        raw_timestamp = data.get("timestamp")
        if raw_timestamp:
            timestamp = datetime.fromisoformat(str(raw_timestamp).replace("Z", "+00:00"))
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)
        else:
            timestamp = datetime.now(timezone.utc)

        return cls(
            question_id=question_id,
            question=data.get("question", ""),
            response=data.get("response", ""),
            response_value=data.get("responseValue"),
            timestamp=timestamp,
        )
