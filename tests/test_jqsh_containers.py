import pytest
from jqsh.jqsh_containers import Seq, OrderedMap


# --- Seq ---

def test_seq_behaves_like_a_list():
    s = Seq([1, 2])
    s.append(3)
    s.insert(0, 0)
    assert list(s) == [0, 1, 2, 3]
    assert len(s) == 4
    del s[0]
    assert s == [1, 2, 3]

def test_seq_slice_is_a_seq():
    s = Seq([1, 2, 3, 4])
    part = s[1:3]
    assert isinstance(part, Seq)
    assert part == Seq([2, 3])

def test_seq_equality_is_order_sensitive():
    assert Seq([1, 2]) == Seq([1, 2])
    assert Seq([1, 2]) != Seq([2, 1])
    assert Seq([1, 2]) == (1, 2)

def test_seq_hash_follows_items():
    assert hash(Seq([1, "a"])) == hash(Seq([1, "a"]))

def test_seq_copy_is_independent():
    s = Seq([1])
    c = s.copy()
    c.append(2)
    assert s == [1]


# --- OrderedMap ---

def test_ordered_map_iterates_in_first_insertion_order():
    m = OrderedMap()
    m["b"] = 1
    m["a"] = 2
    m["b"] = 3  # replacing keeps the original position
    assert list(m) == ["b", "a"]
    assert list(m.items()) == [("b", 3), ("a", 2)]

def test_ordered_map_equality_ignores_order():
    m1 = OrderedMap([("a", 1), ("b", 2)])
    m2 = OrderedMap([("b", 2), ("a", 1)])
    assert m1 == m2
    assert hash(m1) == hash(m2)
    assert m1 != OrderedMap([("a", 1), ("b", 3)])

def test_ordered_map_compares_with_dicts():
    assert OrderedMap({"a": 1}) == {"a": 1}

def test_ordered_map_copy_is_independent():
    m = OrderedMap([("a", 1)])
    c = m.copy()
    c["b"] = 2
    assert "b" not in m
    assert len(c) == 2

def test_ordered_map_delete():
    m = OrderedMap([("a", 1), ("b", 2)])
    del m["a"]
    assert list(m) == ["b"]
    with pytest.raises(KeyError):
        _ = m["a"]
