# docuchat/jobs.py

import json
from dataclasses import dataclass
from typing import Any, Dict, Union

from docuchat.errors import InvalidJobError

REQUIRED_FIELDS = ("fileId", "chatId", "url")


@dataclass(frozen=True)
class IngestionJob:
    """
    Unit of work handed from the API to the ingestion worker. Lives only in
    the queue; the durable outcome is the File's status.
    """

    file_id: str
    chat_id: str
    url: str

    def to_dict(self) -> Dict[str, str]:
        return {"fileId": self.file_id, "chatId": self.chat_id, "url": self.url}

    def to_payload(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_payload(cls, payload: Union[str, bytes, Dict[str, Any]]) -> "IngestionJob":
        if isinstance(payload, (str, bytes)):
            try:
                data = json.loads(payload)
            except ValueError as exc:
                raise InvalidJobError(f"Job payload is not valid JSON: {exc}") from exc
        else:
            data = payload

        if not isinstance(data, dict):
            raise InvalidJobError("Job payload must be a JSON object")

        file_id = data.get("fileId")
        file_id = file_id if isinstance(file_id, str) and file_id else None

        missing = [
            name for name in REQUIRED_FIELDS
            if not isinstance(data.get(name), str) or not data.get(name)
        ]
        if missing:
            raise InvalidJobError(
                f"url, chatId, or fileId missing in job data: {', '.join(missing)}",
                file_id=file_id,
            )

        return cls(file_id=data["fileId"], chat_id=data["chatId"], url=data["url"])
