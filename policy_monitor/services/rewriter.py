# policy_monitor/services/rewriter.py
"""
Ad copy rewriting.

Duplicated ads must differ textually from the disapproved original and still
fit Google's character limits. Rewriting is deterministic where possible
(ordered synonym swaps for visa-service copy), falls back to an external
rewrite service when text runs over budget, and finally to hard truncation.
"""
from __future__ import annotations

import logging
import random
import re
from typing import Callable, List, Optional, Pattern, Sequence, Tuple

logger = logging.getLogger(__name__)

# (text, max_length, context) -> rewritten text
RewriteService = Callable[[str, int, str], str]

_RULES: Sequence[Tuple[str, str]] = (
    # Time-related synonyms
    (r"\b24 Hours?\b", "1 Day"),
    (r"\b24hr?\b", "Same Day"),
    (r"\bFast\b", "Quick"),
    (r"\bQuick\b", "Rapid"),
    (r"\bExpress\b", "Priority"),
    (r"\bUrgent\b", "Priority"),
    (r"\bInstant\b", "Immediate"),
    (r"\bSame-Day\b", "Today"),
    # Action words
    (r"\bApply\b", "Submit"),
    (r"\bGet\b", "Obtain"),
    (r"\bStart\b", "Begin"),
    (r"\bBring\b", "Invite"),
    # Service descriptions
    (r"\bTrusted\b", "Reliable"),
    (r"\bSecure\b", "Safe"),
    (r"\bHassle-Free\b", "Simple"),
    (r"\bEasy\b", "Simple"),
    (r"\bPrompt\b", "Swift"),
    (r"\bAvailable\b", "Offered"),
    # Process terms
    (r"\bProcessing\b", "Handling"),
    (r"\bApplication\b", "Submission"),
    (r"\bApprovals\b", "Confirmations"),
    (r"\bService\b", "Support"),
    # Location variations
    (r"\bDubai\b", "UAE"),
    (r"\bUAE\b", "Dubai"),
)

SUBSTITUTIONS: List[Tuple[Pattern[str], str]] = [
    (re.compile(pattern, re.IGNORECASE), replacement) for pattern, replacement in _RULES
]

DESCRIPTORS: Sequence[str] = (
    "Online", "Digital", "Official", "Authorized", "Certified",
    "Professional", "Verified", "Licensed", "Expert",
)


def substitute(text: str, rules: Sequence[Tuple[Pattern[str], str]] = SUBSTITUTIONS) -> Tuple[str, bool]:
    """Apply the first rule that changes text. Returns (text, changed)."""
    for pattern, replacement in rules:
        modified = pattern.sub(replacement, text)
        if modified != text:
            return modified, True
    return text, False


class TextRewriter:
    def __init__(
        self,
        rewrite_service: Optional[RewriteService] = None,
        rng: Optional[random.Random] = None,
        rules: Sequence[Tuple[Pattern[str], str]] = SUBSTITUTIONS,
        descriptors: Sequence[str] = DESCRIPTORS,
    ):
        self.rewrite_service = rewrite_service
        self.rng = rng or random.Random()
        self.rules = rules
        self.descriptors = descriptors

    def _shorten(self, text: str, max_length: int, context: str) -> str:
        """Ask the rewrite service for a shorter paraphrase, else truncate."""
        if self.rewrite_service is not None:
            try:
                rewritten = (self.rewrite_service(text, max_length, context) or "").strip()
            except Exception as e:
                logger.warning("Rewrite service failed, falling back to truncation: %s", e)
            else:
                if rewritten:
                    return rewritten[:max_length].rstrip()
                logger.warning("Rewrite service returned empty text, truncating")
        return text[:max_length].rstrip() or text[:max_length]

    def rewrite(self, text: str, max_length: int, context: str = "ad headline") -> str:
        if not text:
            return text

        modified, changed = substitute(text, self.rules)
        if changed:
            logger.info('Modified: "%s" -> "%s"', text, modified)
            if len(modified) > max_length:
                return self._shorten(modified, max_length, context)
            return modified

        if len(text) > max_length:
            return self._shorten(text, max_length, context)

        descriptor = self.rng.choice(list(self.descriptors))
        result = f"{descriptor} {text}"
        logger.info('Added descriptor: "%s" -> "%s"', text, result)
        if len(result) > max_length:
            return self._shorten(result, max_length, context)
        return result
