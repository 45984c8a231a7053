"""Comment moderation for emociograma submissions."""

import html
import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# Replaced with asterisks, comment flagged for review
BLOCKED_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"\b(idiota|estúpido|imbecil)\b", re.IGNORECASE),
    re.compile(r"\b(matar|morrer|suicid[aáio]r?)\b", re.IGNORECASE),
    re.compile(r"\b(odi[oa]r?|nojo)\b", re.IGNORECASE),
)

# Left in place, comment flagged for urgent human attention
URGENT_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"(suicid|autolesão|me machucar|acabar com tudo)", re.IGNORECASE),
    re.compile(r"\b(assédio|abuso|perseguição)\b", re.IGNORECASE),
)

URGENT_REASON = "Conteúdo sensível detectado - requer atenção"
FILTERED_REASON = "Conteúdo inadequado filtrado"


@dataclass
class ModerationResult:
    sanitized_comment: str
    is_flagged: bool
    flag_reasons: list[str] = field(default_factory=list)


def moderate_comment(comment: str | None) -> ModerationResult:
    """
    Sanitize a comment and decide whether it needs human review.

    Order matters: urgent patterns are checked on the raw text, blocked
    words are masked next, HTML is escaped last.
    """
    if not comment or not comment.strip():
        return ModerationResult(sanitized_comment="", is_flagged=False)

    reasons: list[str] = []
    text = comment.strip()

    if any(p.search(text) for p in URGENT_PATTERNS):
        reasons.append(URGENT_REASON)
        logger.warning("Comment flagged by urgent pattern")

    masked = text
    for pattern in BLOCKED_PATTERNS:
        masked = pattern.sub(lambda m: "*" * len(m.group(0)), masked)
    if masked != text:
        reasons.append(FILTERED_REASON)

    return ModerationResult(
        sanitized_comment=html.escape(masked, quote=True),
        is_flagged=bool(reasons),
        flag_reasons=reasons,
    )
