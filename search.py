import re
from difflib import SequenceMatcher
from typing import Any, Dict, Iterable, List, Optional, Tuple

from schemas import Message

STOPWORDS = {
    "the", "and", "for", "are", "but", "not", "you", "your", "with", "this", "that",
    "what", "was", "were", "have", "has", "had", "can", "could", "would", "should",
    "about", "from", "they", "them", "there", "their", "then", "than", "will", "just",
    "into", "how", "why", "who", "when", "where", "which", "does", "did", "its", "our",
    "please", "tell",
}


class MemorySearch:
    """Finds snippets from earlier conversations that relate to a new message."""

    def __init__(self, term_threshold: float = 0.8, min_score: float = 0.3):
        self.term_threshold = term_threshold
        self.min_score = min_score

    def extract_terms(self, text: str) -> List[str]:
        """Lowercase content words of three or more characters."""
        words = re.findall(r"[a-z0-9]+", text.lower())
        return [w for w in words if len(w) >= 3 and w not in STOPWORDS]

    def term_similarity(self, term: str, word: str) -> float:
        if term == word:
            return 1.0
        # Ratios below the threshold are impossible when lengths differ this much
        if abs(len(term) - len(word)) > max(len(term), len(word)) // 2:
            return 0.0
        return SequenceMatcher(None, term, word).ratio()

    def relevance_score(self, query: str, content: str) -> float:
        """Share of query terms that appear (fuzzily) in `content`, 0-1."""
        query_terms = set(self.extract_terms(query))
        if not query_terms:
            return 0.0

        words = set(self.extract_terms(content))
        if not words:
            return 0.0

        total = 0.0
        for term in query_terms:
            best = max(self.term_similarity(term, word) for word in words)
            if best >= self.term_threshold:
                total += best

        return min(total / len(query_terms), 1.0)

    def extract_snippet(self, content: str, query: str, max_length: int = 300) -> str:
        """Sentence containing the first matching query term, plus its neighbours."""
        sentences = [s.strip() for s in re.split(r"(?<=[.!?])\s+", content) if s.strip()]
        if not sentences:
            return ""

        query_terms = set(self.extract_terms(query))
        target = 0
        for i, sentence in enumerate(sentences):
            if query_terms & set(self.extract_terms(sentence)):
                target = i
                break

        snippet = " ".join(sentences[max(0, target - 1):target + 2])
        if len(snippet) > max_length:
            snippet = snippet[:max_length] + "..."
        return snippet

    def search_memories(self, conversations: Iterable[Tuple[str, List[Message]]], query: str,
                        limit: int = 3) -> List[Dict[str, Any]]:
        """Score every message of every conversation against `query`.

        `conversations` yields `(chat_id, messages)` pairs.
        """
        results = []

        for chat_id, messages in conversations:
            for message in messages:
                if not message.content:
                    continue

                score = self.relevance_score(query, message.content)
                if score < self.min_score:
                    continue

                results.append({
                    "chat_id": chat_id,
                    "message_id": message.id,
                    "role": message.role.value,
                    "content": self.extract_snippet(message.content, query),
                    "relevance_score": score,
                    "timestamp": message.timestamp.isoformat(),
                })

        results.sort(key=lambda r: r["relevance_score"], reverse=True)
        return results[:limit]


def format_memories(memories: List[Dict[str, Any]]) -> Optional[str]:
    if not memories:
        return None

    lines = []
    for idx, memory in enumerate(memories, start=1):
        score = memory.get("relevance_score")
        relevance = f"{score:.2f}" if score is not None else "N/A"
        lines.append(f"{idx}. {memory['content']} (Relevance: {relevance})")
    return "\n".join(lines)
