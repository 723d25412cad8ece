from labkit.mrapps.indexer import map_func, reduce_func


def test_map_emits_each_word_once():
    result = map_func("doc.txt", "the cat and the dog, the end")
    keys = [kv.key for kv in result]
    assert sorted(keys) == sorted({"the", "cat", "and", "dog", "end"})
    assert len(keys) == len(set(keys))
    assert all(kv.value == "doc.txt" for kv in result)


def test_map_empty_document():
    assert map_func("doc", "!!! 123") == []


def test_reduce_counts_and_sorts():
    values = ["pg-b.txt", "pg-a.txt"]
    assert reduce_func("word", values) == "2 pg-a.txt,pg-b.txt"
    assert values == ["pg-b.txt", "pg-a.txt"]


def test_reduce_single():
    assert reduce_func("w", ["only"]) == "1 only"