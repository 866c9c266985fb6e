"""Token estimation and conversation trimming.

The relay keeps as much recent history as fits in the model's context:
messages are taken newest-first until the next one would push the running
total (system prompt included) plus a reserve for the completion over the
model's token limit.
"""

import logging
import threading
from typing import Callable, List, Sequence

import tiktoken

from groqbot.models import Message

logger = logging.getLogger(__name__)

# Tokens reserved for the completion; matches max_tokens sent upstream
DEFAULT_MARGIN = 1000

DEFAULT_ENCODING = "cl100k_base"


class TokenCounter:
    """tiktoken-backed token counter.

    The encoding is loaded on first use (tiktoken may fetch it from the network)
    and cached for the life of the counter. Instances are callable, so they can
    be passed wherever a ``Callable[[str], int]`` is expected.
    """

    def __init__(self, encoding_name: str = DEFAULT_ENCODING) -> None:
        self._encoding_name = encoding_name
        self._encoding = None
        self._lock = threading.Lock()

    @property
    def encoding(self) -> tiktoken.Encoding:
        if self._encoding is None:
            with self._lock:
                if self._encoding is None:
                    logger.info(f"Loading tiktoken encoding '{self._encoding_name}'")
                    self._encoding = tiktoken.get_encoding(self._encoding_name)
        return self._encoding

    def count(self, text: str) -> int:
        """Count tokens in text. Special-token markers are counted as plain text."""
        if not text:
            return 0
        return len(self.encoding.encode(text, disallowed_special=()))

    def __call__(self, text: str) -> int:
        return self.count(text)


def trim_messages(
    messages: Sequence[Message],
    prompt: str,
    token_limit: int,
    count_tokens: Callable[[str], int],
    margin: int = DEFAULT_MARGIN,
) -> List[Message]:
    """Keep the most recent messages that fit in the token budget.

    Args:
        messages: Conversation, oldest first
        prompt: System prompt (always sent, counted first)
        token_limit: Model context size in tokens
        count_tokens: Token counting function
        margin: Tokens reserved for the completion

    Returns:
        The kept suffix of messages, in original order. Trimming stops at the
        first message (walking backwards) that does not fit, so older messages
        are dropped even if they would fit on their own.

    Examples:
        >>> words = lambda text: len(text.split())
        >>> msgs = [Message(role="user", content="a b c"), Message(role="user", content="d")]
        >>> [m.content for m in trim_messages(msgs, "", 3, words, margin=0)]
        ['d']
    """
    token_count = count_tokens(prompt)
    kept: List[Message] = []

    for message in reversed(messages):
        tokens = count_tokens(message.content)
        if token_count + tokens + margin > token_limit:
            break
        token_count += tokens
        kept.append(message)

    kept.reverse()
    return kept
