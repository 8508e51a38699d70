import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from pydantic import BaseModel

from catalog import ModelListCache, default_catalog, is_chat_model
from config import Settings, get_settings
from context import ContextWindowManager, Strategy
from llm import LLMClient, LLMError, reply_text
from logging_config import setup_logging
from prompts import DEFAULT_IMAGE_REQUEST, build_system_prompt
from schemas import FileData, Message, Role, file_message
from search import MemorySearch
from storage import ChatNotFoundError, ConversationStorage

setup_logging()
logger = logging.getLogger(__name__)


# Pydantic models
class ChatRequest(BaseModel):
    chat_id: Optional[str] = None
    message: str = ""
    model: Optional[str] = None
    strategy: Optional[Strategy] = None
    file_data: Optional[FileData] = None

class ChatResponse(BaseModel):
    response: str
    chat_id: str
    message_id: str
    context_stats: Dict[str, int]

class CreateChatRequest(BaseModel):
    title: str = "New Chat"

class HistoryResponse(BaseModel):
    chat: Dict[str, Any]
    messages: List[Message]
    total_count: int

class ContextCheckRequest(BaseModel):
    model: Optional[str] = None
    system_prompt: str = ""
    messages: List[Message] = []
    current_message: Optional[str] = None

class ContextCheckResponse(BaseModel):
    model_id: str
    fits: bool
    estimated_tokens: int
    available_tokens: int

@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _llm_client is not None:
        await _llm_client.close()

# Initialize components
app = FastAPI(title="chat context service", version="1.0.0", lifespan=lifespan)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware, minimum_size=1000)

# Global instances, created lazily
_storage = None
_llm_client = None
_model_cache = None
memory_search = MemorySearch()

def get_storage() -> ConversationStorage:
    global _storage
    if _storage is None:
        _storage = ConversationStorage(get_settings().storage_dir)
    return _storage

def get_llm_client() -> LLMClient:
    """Lazy initialization of LLM client."""
    global _llm_client
    if _llm_client is None:
        try:
            _llm_client = LLMClient()
        except ValueError as e:
            raise HTTPException(status_code=503, detail=str(e))
    return _llm_client

def get_model_cache() -> ModelListCache:
    global _model_cache
    if _model_cache is None:
        _model_cache = ModelListCache(ttl_seconds=get_settings().models_cache_ttl)
    return _model_cache

def get_memory_search() -> MemorySearch:
    return memory_search

def find_memories(storage: ConversationStorage, search: MemorySearch, chat_id: str,
                  query: str, limit: int) -> List[Dict[str, Any]]:
    """Snippets from the user's other chats; failures only cost the memories."""
    if not query:
        return []
    try:
        return search.search_memories(storage.other_conversations(chat_id), query, limit)
    except (OSError, ValueError) as e:
        logger.warning("Memory search failed, continuing without memories: %s", e)
        return []

@app.post("/api/chat", response_model=ChatResponse)
async def chat(request: ChatRequest,
               storage: ConversationStorage = Depends(get_storage),
               client: LLMClient = Depends(get_llm_client),
               search: MemorySearch = Depends(get_memory_search),
               settings: Settings = Depends(get_settings)):
    """Run one chat turn with context window management."""
    if not request.message and request.file_data is None:
        raise HTTPException(status_code=400, detail="Message or file is required")

    try:
        if request.chat_id:
            chat_id = request.chat_id
            history = storage.load_conversation(chat_id, limit=settings.history_limit)
        else:
            title = request.message[:50] or request.file_data.file_name
            chat_id = storage.create_chat(title)["id"]
            history = []

        model = request.model or settings.default_model
        manager = ContextWindowManager(
            model,
            strategy=request.strategy or settings.context_strategy,
            preserve_recent_messages=settings.preserve_recent_messages,
        )

        memories = find_memories(storage, search, chat_id, request.message, settings.memory_limit)
        file_data = request.file_data

        if file_data is not None and file_data.metadata.get("isImage") and file_data.url:
            # The image goes into the current turn itself rather than a text document block
            messages = manager.prepare(history, build_system_prompt(memories, image=True))
            messages.append({
                "role": "user",
                "content": [
                    {"type": "text", "text": request.message or DEFAULT_IMAGE_REQUEST},
                    {"type": "image_url", "image_url": {"url": file_data.url, "detail": "high"}},
                ],
            })
        else:
            messages = manager.prepare(history, build_system_prompt(memories), file_data, request.message)

        logger.info("Prepared %d messages for %s (chat %s)", len(messages), manager.model_config.id, chat_id)

        response = await client.chat(messages, model)
        assistant_content = reply_text(response)

        to_save = []
        if file_data is not None:
            to_save.append(file_message(file_data))
        if request.message:
            to_save.append(Message(role=Role.USER, content=request.message))
        assistant_message = Message(role=Role.ASSISTANT, content=assistant_content)
        to_save.append(assistant_message)
        storage.append_messages(chat_id, to_save)

        return ChatResponse(
            response=assistant_content,
            chat_id=chat_id,
            message_id=assistant_message.id,
            context_stats={
                "message_count": len(messages),
                "estimated_tokens": manager.estimate_blocks(messages),
                "available_tokens": manager.available_tokens,
                "context_window": manager.model_config.context_window,
            },
        )

    except ChatNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except LLMError as e:
        logger.error("Inference request failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Chat request failed")
        raise HTTPException(status_code=500, detail=str(e))

@app.get("/api/models")
async def list_models(client: LLMClient = Depends(get_llm_client),
                      cache: ModelListCache = Depends(get_model_cache)):
    """Chat models offered by the provider, with display metadata."""
    models = cache.get()
    if models is None:
        try:
            raw = await client.list_models()
            raw = sorted((m for m in raw if is_chat_model(m.get("id", ""))),
                         key=lambda m: m.get("created") or 0, reverse=True)
            models = [default_catalog.describe(m["id"], created=m.get("created"), owned_by=m.get("owned_by"))
                      for m in raw]
            cache.set(models)
            logger.info("Fetched %d available models", len(models))
        except LLMError as e:
            logger.error("Error fetching models, using fallback list: %s", e)
            models = default_catalog.fallback_models()

    ids = [m["id"] for m in models]
    if "gpt-4o" in ids:
        current = "gpt-4o"
    elif "gpt-4o-mini" in ids:
        current = "gpt-4o-mini"
    else:
        current = ids[0] if ids else "gpt-4o"

    return {
        "models": models,
        "models_by_category": {
            "premium": [m for m in models if m["category"] == "premium"],
            "standard": [m for m in models if m["category"] == "standard"],
        },
        "current_model": current,
        "total_models": len(models),
        "cache_info": cache.info(),
    }

@app.get("/api/models/{model_id}/context")
async def model_context(model_id: str):
    """Context window budget the service applies for a model."""
    return ContextWindowManager(model_id).get_context_info()

@app.post("/api/context/check", response_model=ContextCheckResponse)
async def check_context(request: ContextCheckRequest, settings: Settings = Depends(get_settings)):
    """Would this conversation fit without truncation?"""
    manager = ContextWindowManager(request.model or settings.default_model)
    return ContextCheckResponse(
        model_id=manager.model_config.id,
        fits=manager.fits(request.messages, request.system_prompt, request.current_message),
        estimated_tokens=manager.estimate_total(request.messages, request.system_prompt, request.current_message),
        available_tokens=manager.available_tokens,
    )

@app.post("/api/chats")
async def create_chat(request: CreateChatRequest, storage: ConversationStorage = Depends(get_storage)):
    chat = storage.create_chat(request.title)
    chat.pop("messages", None)
    return chat

@app.get("/api/chats")
async def list_chats(storage: ConversationStorage = Depends(get_storage)):
    """List all chats."""
    try:
        return {"chats": storage.list_chats()}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

@app.get("/api/chats/{chat_id}", response_model=HistoryResponse)
async def get_history(chat_id: str, limit: int = 50, offset: int = 0,
                      storage: ConversationStorage = Depends(get_storage)):
    """Get chat history with pagination."""
    try:
        chat = storage.get_chat(chat_id)
        messages = storage.load_conversation(chat_id)
    except ChatNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return HistoryResponse(
        chat=chat,
        messages=messages[offset:offset + limit],
        total_count=len(messages),
    )

@app.delete("/api/chats/{chat_id}")
async def delete_chat(chat_id: str, storage: ConversationStorage = Depends(get_storage)):
    try:
        storage.delete_chat(chat_id)
    except ChatNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"deleted": chat_id}

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
