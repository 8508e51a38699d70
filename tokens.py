import json
import math
from typing import Any, Dict, List, Union

Content = Union[str, List[Dict[str, Any]]]

CHARS_PER_TOKEN = 4


class TokenEstimator:
    """Character based token approximation (~4 characters per token)."""

    def estimate(self, text: str) -> int:
        """Rough token estimation (characters / 4, rounded up)."""
        if not text:
            return 0
        return math.ceil(len(text) / CHARS_PER_TOKEN)

    def estimate_content(self, content: Content) -> int:
        """Estimate tokens for plain text or a multimodal content list."""
        if isinstance(content, list):
            return self.estimate(json.dumps(content, separators=(",", ":"), ensure_ascii=False))
        return self.estimate(content)


default_estimator = TokenEstimator()


def estimate_tokens(text: str) -> int:
    return default_estimator.estimate(text)
