"""
Context window budgeting.

Turns a system prompt, optional document, conversation history and the
pending user turn into an ordered list of `{role, content}` blocks that
fits the bound model's input budget (context window minus reserved output).
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from catalog import ModelCatalog, ModelConfig, default_catalog
from schemas import FileData, Message
from tokens import CHARS_PER_TOKEN, Content, TokenEstimator, default_estimator

logger = logging.getLogger(__name__)

FILE_CONTEXT_SHARE = 0.4
TRUNCATION_NOTICE = "\n\n[Content truncated due to length limits...]"
# Characters dropped from the cut point to make room for the notice.
TRUNCATION_HEADROOM = 100

Block = Dict[str, Any]


class Strategy(str, Enum):
    TRUNCATE = "truncate"
    SLIDING_WINDOW = "sliding-window"
    SUMMARIZE = "summarize"


@dataclass(frozen=True)
class HistoryEntry:
    """A formatted history message with its token cost."""

    role: str
    content: Content
    tokens: int

    @property
    def is_multimodal(self) -> bool:
        return isinstance(self.content, list)

    def as_block(self) -> Block:
        return {"role": self.role, "content": self.content}


def truncate_text(text: str, max_tokens: int, estimator: Optional[TokenEstimator] = None) -> str:
    """Cut `text` to at most `max_tokens` and append a truncation notice."""
    estimator = estimator or default_estimator
    if estimator.estimate(text) <= max_tokens:
        return text

    cut = max(max_tokens * CHARS_PER_TOKEN - TRUNCATION_HEADROOM, 0)
    truncated = text[:cut] + TRUNCATION_NOTICE
    # Estimators denser than the character heuristic need a shorter cut
    while cut > 0 and estimator.estimate(truncated) > max_tokens:
        cut = min(cut - 1, cut * max_tokens // estimator.estimate(truncated))
        truncated = text[:max(cut, 0)] + TRUNCATION_NOTICE
    return truncated


def _format_size(size: Optional[int]) -> str:
    if not size:
        return "unknown"
    # Hundredths of a megabyte, rounded half up
    hundredths = math.floor(size * 100 / 1024 / 1024 + 0.5)
    whole, frac = divmod(hundredths, 100)
    if not frac:
        return f"{whole} MB"
    return f"{whole}.{frac:02d}".rstrip("0") + " MB"


def format_file_context(file_data: FileData) -> str:
    """Wrap a document's extracted text in a labelled context block."""
    if not file_data.extracted_text:
        return ""

    return (
        "[DOCUMENT CONTEXT]\n"
        f"File: {file_data.file_name}\n"
        f"Type: {file_data.file_type}\n"
        f"Size: {_format_size(file_data.file_size)}\n"
        "\n"
        "Content:\n"
        f"{file_data.extracted_text}\n"
        "\n"
        "[END DOCUMENT CONTEXT]"
    )


def format_message(message: Message) -> Content:
    """Render a stored message as API content.

    Image files with a URL become a text + image_url pair; other files
    become `[File: name]` followed by their extracted text.
    """
    if not message.has_file:
        return message.content

    file = message.file
    if file.is_image and file.url:
        text = message.content
        if file.analysis:
            text += f" - {file.analysis}"
        return [
            {"type": "text", "text": text},
            {"type": "image_url", "image_url": {"url": file.url}},
        ]

    content = f"[File: {file.name}]"
    if file.extracted_text:
        content += f"\n{file.extracted_text}"
    return content


class HistoryStrategy:
    """Chooses which history entries fit in `budget` tokens.

    Entries arrive oldest-first and are returned oldest-first.
    """

    strategy = None

    def select(self, entries: List[HistoryEntry], budget: int, preserve_recent: int,
               estimator: TokenEstimator) -> List[HistoryEntry]:
        raise NotImplementedError


class TruncateStrategy(HistoryStrategy):
    """Newest-first greedy fill, stopping at the first message that overflows."""

    strategy = Strategy.TRUNCATE

    def select(self, entries: List[HistoryEntry], budget: int, preserve_recent: int,
               estimator: TokenEstimator) -> List[HistoryEntry]:
        selected = []
        used = 0
        for entry in reversed(entries):
            if used + entry.tokens > budget:
                break
            selected.insert(0, entry)
            used += entry.tokens
        return selected


class SlidingWindowStrategy(HistoryStrategy):
    """Keep the most recent messages first, then backfill older ones."""

    strategy = Strategy.SLIDING_WINDOW

    def select(self, entries: List[HistoryEntry], budget: int, preserve_recent: int,
               estimator: TokenEstimator) -> List[HistoryEntry]:
        split = max(len(entries) - preserve_recent, 0)
        recent, older = entries[split:], entries[:split]

        selected = []
        used = 0
        for entry in reversed(recent):
            if used + entry.tokens <= budget:
                selected.insert(0, entry)
                used += entry.tokens
                continue
            if not selected:
                # Nothing else is added next to a force-included block
                return [self._force_include(entry, budget, estimator)]
            break

        for entry in reversed(older):
            if used + entry.tokens > budget:
                break
            selected.insert(0, entry)
            used += entry.tokens
        return selected

    def _force_include(self, entry: HistoryEntry, budget: int, estimator: TokenEstimator) -> HistoryEntry:
        if entry.is_multimodal:
            logger.info("Most recent message (%d tokens) exceeds budget of %d; including multimodal block whole",
                        entry.tokens, budget)
            return entry
        content = truncate_text(entry.content, max(budget, 0), estimator)
        logger.info("Most recent message truncated from %d tokens to fit budget of %d", entry.tokens, budget)
        return HistoryEntry(role=entry.role, content=content, tokens=estimator.estimate(content))


class SummarizeStrategy(HistoryStrategy):
    """Summarization of older history is not implemented yet; uses the sliding window."""

    strategy = Strategy.SUMMARIZE

    def __init__(self):
        self._fallback = SlidingWindowStrategy()

    def select(self, entries: List[HistoryEntry], budget: int, preserve_recent: int,
               estimator: TokenEstimator) -> List[HistoryEntry]:
        logger.debug("summarize strategy not implemented, falling back to sliding-window")
        return self._fallback.select(entries, budget, preserve_recent, estimator)


STRATEGIES: Dict[Strategy, HistoryStrategy] = {
    s.strategy: s for s in (TruncateStrategy(), SlidingWindowStrategy(), SummarizeStrategy())
}


class ContextWindowManager:
    """Prepares API message lists that respect a model's context window.

    Holds only immutable configuration, so one instance may serve
    concurrent requests.
    """

    def __init__(self, model_id: str, strategy: Union[Strategy, str] = Strategy.SLIDING_WINDOW,
                 preserve_recent_messages: int = 10, catalog: Optional[ModelCatalog] = None,
                 estimator: Optional[TokenEstimator] = None):
        if preserve_recent_messages < 0:
            raise ValueError("preserve_recent_messages must be >= 0")

        self.model_config: ModelConfig = (catalog or default_catalog).get(model_id)
        self.strategy = Strategy(strategy)
        self.preserve_recent_messages = preserve_recent_messages
        self.estimator = estimator or default_estimator

    @property
    def available_tokens(self) -> int:
        return self.model_config.available_tokens

    def prepare(self, messages: List[Message], system_prompt: str,
                file_data: Optional[FileData] = None,
                current_message: Optional[str] = None) -> List[Block]:
        """Build `[system, file context?, *history, current user turn?]`."""
        available = self.available_tokens

        processed = [{"role": "system", "content": system_prompt}]
        total = self.estimator.estimate(system_prompt)

        if file_data is not None and file_data.extracted_text:
            file_context = format_file_context(file_data)
            file_tokens = self.estimator.estimate(file_context)

            if total + file_tokens < available:
                processed.append({"role": "system", "content": file_context})
                total += file_tokens
            else:
                max_file_tokens = int(available * FILE_CONTEXT_SHARE)
                truncated = truncate_text(file_context, max_file_tokens, self.estimator)
                logger.info("Document %r truncated from %d to %d tokens", file_data.file_name,
                            file_tokens, self.estimator.estimate(truncated))
                processed.append({"role": "system", "content": truncated})
                total += self.estimator.estimate(truncated)

        # The current turn is appended after history, so history must leave room for it.
        if current_message:
            total += self.estimator.estimate(current_message)

        entries = [self._entry(message) for message in messages]
        history = STRATEGIES[self.strategy].select(entries, available - total,
                                                   self.preserve_recent_messages, self.estimator)
        processed.extend(entry.as_block() for entry in history)

        if current_message:
            processed.append({"role": "user", "content": current_message})

        logger.debug("Prepared %d blocks (%d of %d history messages) for %s",
                     len(processed), len(history), len(messages), self.model_config.id)
        return processed

    def fits(self, messages: List[Message], system_prompt: str,
             current_message: Optional[str] = None) -> bool:
        """Whether everything would fit without any truncation."""
        return self.estimate_total(messages, system_prompt, current_message) <= self.available_tokens

    def estimate_total(self, messages: List[Message], system_prompt: str,
                       current_message: Optional[str] = None) -> int:
        total = self.estimator.estimate(system_prompt)
        if current_message:
            total += self.estimator.estimate(current_message)
        for message in messages:
            total += self.estimator.estimate_content(format_message(message))
        return total

    def estimate_blocks(self, blocks: List[Block]) -> int:
        return sum(self.estimator.estimate_content(block["content"]) for block in blocks)

    def get_context_info(self) -> Dict[str, Any]:
        return {
            "model_id": self.model_config.id,
            "context_window": self.model_config.context_window,
            "reserve_tokens": self.model_config.reserve_tokens,
        }

    def _entry(self, message: Message) -> HistoryEntry:
        content = format_message(message)
        return HistoryEntry(role=message.role.value, content=content,
                            tokens=self.estimator.estimate_content(content))


def create_context_manager(model_id: str) -> ContextWindowManager:
    return ContextWindowManager(model_id)

