import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageType(str, Enum):
    TEXT = "text"
    FILE = "file"


class CamelModel(BaseModel):
    """Accepts camelCase wire names (`fileType`) as well as snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileInfo(CamelModel):
    """File attached to a persisted message."""

    url: Optional[str] = None
    name: str = ""
    file_type: str = ""
    size: Optional[int] = None
    extracted_text: Optional[str] = None
    analysis: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_image(self) -> bool:
        return bool(self.metadata.get("isImage"))


class Message(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    content: str = ""
    role: Role
    timestamp: datetime = Field(default_factory=datetime.now)
    type: MessageType = MessageType.TEXT
    file: Optional[FileInfo] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def has_file(self) -> bool:
        # A file-typed message without a payload is treated as plain text.
        return self.type == MessageType.FILE and self.file is not None


class FileData(CamelModel):
    """Request-scoped output of the file-processing step."""

    file_name: str = ""
    file_type: str = ""
    file_size: Optional[int] = None
    extracted_text: Optional[str] = None
    url: Optional[str] = None
    analysis: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_image(self) -> bool:
        return bool(self.metadata.get("isImage")) or self.file_type.startswith("image/")


def _preview(text: Optional[str], length: int) -> Optional[str]:
    if not text:
        return None
    return text[:length] + ("..." if len(text) > length else "")


def file_message(file_data: FileData) -> Message:
    """Persistable user message recording an uploaded file."""
    if file_data.metadata.get("isImage"):
        content = f"Uploaded image: {file_data.file_name}"
        if file_data.analysis:
            content += f" - {file_data.analysis[:100]}..."
    else:
        content = f"Uploaded file: {file_data.file_name}"

    extracted = file_data.extracted_text or ""
    analysis = file_data.analysis or ""
    metadata = dict(file_data.metadata)
    metadata.update({
        "hasText": bool(extracted),
        "textLength": len(extracted),
        "isPDF": file_data.file_type == "application/pdf",
        "isImage": file_data.is_image,
        "hasAnalysis": bool(analysis),
        "processingDate": datetime.now().isoformat(),
        "contentPreview": _preview(extracted, 500) or _preview(analysis, 200),
    })

    return Message(
        content=content,
        role=Role.USER,
        type=MessageType.FILE,
        file=FileInfo(
            url=file_data.url,
            name=file_data.file_name,
            file_type=file_data.file_type,
            size=file_data.file_size,
            extracted_text=extracted,
            analysis=analysis,
            metadata=metadata,
        ),
    )
