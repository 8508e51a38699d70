import json
import os

import pytest

from schemas import FileData, Message, MessageType, Role, file_message
from storage import ChatNotFoundError, ConversationStorage


@pytest.fixture
def store(tmp_path):
    return ConversationStorage(str(tmp_path))


class TestConversationStorage:
    def test_create_chat(self, store, tmp_path):
        chat = store.create_chat("Trip planning")

        assert chat["title"] == "Trip planning"
        assert chat["message_count"] == 0
        assert os.path.exists(tmp_path / f"{chat['id']}.json")

    def test_append_and_load(self, store):
        chat_id = store.create_chat()["id"]
        store.append_messages(chat_id, [
            Message(role=Role.USER, content="hello"),
            Message(role=Role.ASSISTANT, content="hi there"),
        ])

        messages = store.load_conversation(chat_id)

        assert [(m.role, m.content) for m in messages] == [(Role.USER, "hello"), (Role.ASSISTANT, "hi there")]
        summary = store.get_chat(chat_id)
        assert summary["message_count"] == 2
        assert summary["last_message"] == "hi there"
        assert "messages" not in summary

    def test_load_with_limit_returns_most_recent(self, store):
        chat_id = store.create_chat()["id"]
        store.append_messages(chat_id, [Message(role=Role.USER, content=str(i)) for i in range(30)])

        assert [m.content for m in store.load_conversation(chat_id, limit=20)] == [str(i) for i in range(10, 30)]
        assert store.load_conversation(chat_id, limit=0) == []

    def test_file_messages_round_trip_with_wire_names(self, store, tmp_path):
        chat_id = store.create_chat()["id"]
        file_data = FileData(file_name="paper.pdf", file_type="application/pdf", file_size=2048,
                             extracted_text="Abstract text", url="https://cdn.example.com/paper.pdf")
        store.append_messages(chat_id, [file_message(file_data)])

        with open(tmp_path / f"{chat_id}.json", encoding="utf-8") as f:
            raw = json.load(f)["messages"][0]
        assert raw["file"]["fileType"] == "application/pdf"
        assert raw["file"]["extractedText"] == "Abstract text"

        loaded = store.load_conversation(chat_id)[0]
        assert loaded.type == MessageType.FILE
        assert loaded.file.name == "paper.pdf"
        assert loaded.file.metadata["isPDF"] is True

    def test_last_message_truncated(self, store):
        chat_id = store.create_chat()["id"]
        store.append_messages(chat_id, [Message(role=Role.ASSISTANT, content="a" * 300)])
        assert store.get_chat(chat_id)["last_message"] == "a" * 100

    def test_missing_chat(self, store):
        with pytest.raises(ChatNotFoundError):
            store.load_conversation("does-not-exist")

    def test_invalid_chat_id(self, store):
        with pytest.raises(ValueError):
            store.load_conversation("../etc/passwd")

    def test_delete_chat(self, store):
        chat_id = store.create_chat()["id"]
        store.delete_chat(chat_id)

        assert not store.chat_exists(chat_id)
        with pytest.raises(ChatNotFoundError):
            store.delete_chat(chat_id)

    def test_list_chats_most_recent_first(self, store):
        first = store.create_chat("first")["id"]
        second = store.create_chat("second")["id"]
        store.append_messages(first, [Message(role=Role.USER, content="bump")])

        ids = [c["id"] for c in store.list_chats()]

        assert ids[0] == first
        assert set(ids) == {first, second}

    def test_list_ignores_foreign_files(self, store, tmp_path):
        (tmp_path / "not a chat.json").write_text("{}")
        assert store.list_chats() == []

    def test_other_conversations_excludes_current(self, store):
        current = store.create_chat("current")["id"]
        other = store.create_chat("other")["id"]
        store.append_messages(other, [Message(role=Role.USER, content="remember me")])

        found = dict(store.other_conversations(current))

        assert list(found) == [other]
        assert found[other][0].content == "remember me"


class TestFileMessage:
    def test_document_message(self):
        message = file_message(FileData(file_name="notes.txt", file_type="text/plain",
                                        extracted_text="x" * 600))

        assert message.content == "Uploaded file: notes.txt"
        assert message.role == Role.USER
        assert message.file.metadata["hasText"] is True
        assert message.file.metadata["textLength"] == 600
        assert message.file.metadata["contentPreview"] == "x" * 500 + "..."

    def test_image_message(self):
        message = file_message(FileData(file_name="cat.jpg", file_type="image/jpeg", url="https://x/cat.jpg",
                                        analysis="A cat on a sofa", metadata={"isImage": True}))

        assert message.content == "Uploaded image: cat.jpg - A cat on a sofa..."
        assert message.file.is_image
        assert message.file.metadata["hasAnalysis"] is True
        assert message.file.metadata["contentPreview"] == "A cat on a sofa"

    def test_mime_type_marks_image(self):
        message = file_message(FileData(file_name="p.png", file_type="image/png"))
        assert message.content == "Uploaded file: p.png"
        assert message.file.metadata["isImage"] is True
