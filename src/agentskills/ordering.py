"""Order list helpers for user-customizable ordering of tree roots."""

from typing import Iterable, List, Optional


def ensure_order(existing: List[str], keys: Iterable[str]) -> List[str]:
    """Reconcile a stored order with the live keys.

    Stale keys are dropped, new keys are appended in the given order, and the
    relative order of known keys is kept.
    """
    keys = list(keys)
    key_set = set(keys)
    normalized = [k for k in existing if k in key_set]
    seen = set(normalized)
    for k in keys:
        if k not in seen:
            normalized.append(k)
            seen.add(k)
    return normalized


def reorder_key(order: List[str], dragged_key: str, target_key: Optional[str] = None) -> List[str]:
    """Place ``dragged_key`` directly before ``target_key`` (at the end if None or unknown)."""
    if dragged_key == target_key:
        return list(order)
    result = [k for k in order if k != dragged_key]
    if target_key is None or target_key not in result:
        result.append(dragged_key)
        return result
    result.insert(result.index(target_key), dragged_key)
    return result


def move_key(order: List[str], key: str, delta: int) -> List[str]:
    """Move a key by ``delta`` positions; moves past either end are ignored."""
    result = list(order)
    if key not in result:
        result.append(key)
    current_index = result.index(key)
    target_index = current_index + delta
    if target_index < 0 or target_index >= len(result):
        return result
    result.pop(current_index)
    result.insert(target_index, key)
    return result


def sort_by_order(items: List, order: List[str], key_func) -> List:
    """Sort items by their position in ``order``, falling back to input order.

    Items whose key is not in ``order`` keep their relative order after the
    ordered ones.
    """
    order_index = {k: i for i, k in enumerate(order)}
    fallback = len(order)
    indexed = list(enumerate(items))
    indexed.sort(key=lambda pair: (order_index.get(key_func(pair[1]), fallback), pair[0]))
    return [item for _, item in indexed]
