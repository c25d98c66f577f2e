"""
Fetch-list-then-enrich-each with per-item fallback.
"""
from typing import Awaitable, Callable, Iterable, List, TypeVar

from rumori.logger import get_logger

logger = get_logger("enrichment")

T = TypeVar("T")
R = TypeVar("R")


async def enrich_each(
    items: Iterable[T],
    enrich: Callable[[T], Awaitable[R]],
    default: Callable[[T], R],
    label: str = "item",
) -> List[R]:
    """
    Enrich every item in order, substituting ``default(item)`` when the
    enrichment of that single item fails.

    Args:
        items: Parent list that was already fetched successfully
        enrich: Async secondary lookup for one item
        default: Fallback built from the item when its lookup fails
        label: Name used in log messages

    Returns:
        One result per input item, in input order
    """
    results: List[R] = []
    for item in items:
        try:
            results.append(await enrich(item))
        except Exception as e:
            logger.warning(f"Enrichment failed for {label} {getattr(item, 'id', item)}: {e}")
            results.append(default(item))
    return results
