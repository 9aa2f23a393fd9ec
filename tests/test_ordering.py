"""Tests for the order list helpers."""

from agentskills.ordering import ensure_order, move_key, reorder_key, sort_by_order


def test_ensure_order_drops_stale_and_appends_new():
    assert ensure_order(["c", "gone", "a"], ["a", "b", "c"]) == ["c", "a", "b"]


def test_reorder_to_current_position_is_identity():
    order = ["a", "b", "c"]
    assert reorder_key(order, "b", "c") == order
    assert reorder_key(order, "b", "b") == order
    assert reorder_key(order, "c", None) == order


def test_reorder_places_dragged_before_target():
    result = reorder_key(["a", "b", "c", "d"], "d", "b")
    assert result == ["a", "d", "b", "c"]
    assert result.index("d") + 1 == result.index("b")


def test_reorder_unknown_target_appends():
    assert reorder_key(["a", "b", "c"], "a", "zzz") == ["b", "c", "a"]


def test_move_key_bounds():
    assert move_key(["a", "b", "c"], "b", -1) == ["b", "a", "c"]
    assert move_key(["a", "b", "c"], "b", 1) == ["a", "c", "b"]
    assert move_key(["a", "b", "c"], "a", -1) == ["a", "b", "c"]
    assert move_key(["a", "b", "c"], "c", 1) == ["a", "b", "c"]


def test_sort_by_order_keeps_unknown_items_in_input_order():
    items = ["x", "b", "y", "a"]
    assert sort_by_order(items, ["a", "b"], lambda k: k) == ["a", "b", "x", "y"]
