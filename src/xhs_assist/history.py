"""Bounded history windowing.

Long sessions would otherwise send every turn upstream on each call. The
window keeps the opening turns (usually the collected page content) and
the most recent exchange.
"""

from collections.abc import Sequence

from .envelope import ContentEnvelope, Role

ELIGIBLE_ROLES = frozenset({Role.USER, Role.ASSISTANT})

MAX_UNWINDOWED = 6
HEAD_TURNS = 2
TAIL_TURNS = 3


def window_history(
    history: Sequence[ContentEnvelope],
    *,
    max_unwindowed: int = MAX_UNWINDOWED,
    head: int = HEAD_TURNS,
    tail: int = TAIL_TURNS,
) -> list[ContentEnvelope]:
    """Select the turns to send upstream.

    Turns without a user/assistant role are dropped first. Histories of at
    most max_unwindowed turns are returned whole; longer ones keep the first
    head and last tail turns in their original order.

    Always returns a new list; the caller's sequence is never modified.
    """
    eligible = [env for env in history if getattr(env, "role", None) in ELIGIBLE_ROLES]
    if len(eligible) <= max_unwindowed:
        return eligible
    return eligible[:head] + eligible[len(eligible) - tail:]
