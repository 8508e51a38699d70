import json
import logging
import os
import re
import uuid
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

from schemas import Message

logger = logging.getLogger(__name__)

CHAT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class ChatNotFoundError(Exception):
    def __init__(self, chat_id: str):
        super().__init__(f"Chat not found: {chat_id}")
        self.chat_id = chat_id


class ConversationStorage:
    """One JSON document per chat: metadata plus the full message list."""

    def __init__(self, storage_dir: str = "conversations"):
        self.storage_dir = storage_dir
        os.makedirs(storage_dir, exist_ok=True)

    def _path(self, chat_id: str) -> str:
        if not CHAT_ID_PATTERN.match(chat_id):
            raise ValueError(f"Invalid chat ID: {chat_id!r}")
        return os.path.join(self.storage_dir, f"{chat_id}.json")

    def _read(self, chat_id: str) -> Dict[str, Any]:
        filepath = self._path(chat_id)
        if not os.path.exists(filepath):
            raise ChatNotFoundError(chat_id)

        with open(filepath, 'r', encoding='utf-8') as f:
            return json.load(f)

    def _write(self, chat: Dict[str, Any]) -> None:
        filepath = self._path(chat["id"])
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(chat, f, indent=2, ensure_ascii=False)

    def create_chat(self, title: str = "New Chat") -> Dict[str, Any]:
        now = datetime.now().isoformat()
        chat = {
            "id": uuid.uuid4().hex,
            "title": title or "New Chat",
            "created_at": now,
            "updated_at": now,
            "last_message": "",
            "message_count": 0,
            "messages": [],
        }
        self._write(chat)
        logger.info("Created chat %s", chat["id"])
        return chat

    def chat_exists(self, chat_id: str) -> bool:
        return os.path.exists(self._path(chat_id))

    def get_chat(self, chat_id: str) -> Dict[str, Any]:
        """Chat summary without its messages."""
        chat = self._read(chat_id)
        chat.pop("messages", None)
        return chat

    def load_conversation(self, chat_id: str, limit: Optional[int] = None) -> List[Message]:
        """Messages in order; with `limit`, only the most recent ones."""
        raw = self._read(chat_id).get("messages", [])
        if limit is not None:
            raw = raw[-limit:] if limit > 0 else []
        return [Message.model_validate(m) for m in raw]

    def append_messages(self, chat_id: str, messages: List[Message]) -> None:
        chat = self._read(chat_id)
        chat["messages"].extend(m.model_dump(mode="json", by_alias=True) for m in messages)
        chat["message_count"] = len(chat["messages"])
        chat["updated_at"] = datetime.now().isoformat()

        for message in reversed(messages):
            if message.content:
                chat["last_message"] = message.content[:100]
                break

        self._write(chat)

    def delete_chat(self, chat_id: str) -> None:
        filepath = self._path(chat_id)
        if not os.path.exists(filepath):
            raise ChatNotFoundError(chat_id)
        os.remove(filepath)
        logger.info("Deleted chat %s", chat_id)

    def list_chat_ids(self) -> List[str]:
        if not os.path.exists(self.storage_dir):
            return []

        files = os.listdir(self.storage_dir)
        ids = [f[:-len('.json')] for f in files if f.endswith('.json')]
        return [chat_id for chat_id in ids if CHAT_ID_PATTERN.match(chat_id)]

    def list_chats(self) -> List[Dict[str, Any]]:
        """Summaries of all chats, most recently updated first."""
        chats = [self.get_chat(chat_id) for chat_id in self.list_chat_ids()]
        chats.sort(key=lambda c: c.get("updated_at", ""), reverse=True)
        return chats

    def other_conversations(self, exclude_chat_id: Optional[str] = None) -> Iterator[Tuple[str, List[Message]]]:
        """`(chat_id, messages)` for every chat except `exclude_chat_id`."""
        for chat_id in self.list_chat_ids():
            if chat_id == exclude_chat_id:
                continue
            yield chat_id, self.load_conversation(chat_id)
