import json

from tokens import TokenEstimator, estimate_tokens


class TestTokenEstimator:
    def setup_method(self):
        self.estimator = TokenEstimator()

    def test_empty_string_is_zero(self):
        assert self.estimator.estimate("") == 0

    def test_rounds_up_partial_tokens(self):
        assert self.estimator.estimate("abcd") == 1
        assert self.estimator.estimate("abcde") == 2
        assert self.estimator.estimate("a") == 1

    def test_long_text(self):
        assert self.estimator.estimate("x" * 50000) == 12500

    def test_multimodal_content_counts_serialized_json(self):
        content = [
            {"type": "text", "text": "look"},
            {"type": "image_url", "image_url": {"url": "https://cdn.example.com/cat.png"}},
        ]
        serialized = json.dumps(content, separators=(",", ":"))
        expected = -(-len(serialized) // 4)

        assert self.estimator.estimate_content(content) == expected

    def test_plain_content_matches_estimate(self):
        assert self.estimator.estimate_content("hello world") == self.estimator.estimate("hello world")

    def test_module_helper(self):
        assert estimate_tokens("12345678") == 2
