import asyncio
import importlib

import pytest


@pytest.fixture()
def errors(sorter_env):
    return sorter_env["errors"]


def test_seeded_system_roots(store):
    tree = asyncio.run(store.get_full_tree())

    assert tree.id == "0"
    assert [(child.id, child.title) for child in tree.children] == [
        ("1", "Bookmarks bar"),
        ("2", "Other bookmarks"),
        ("3", "Mobile bookmarks"),
    ]


def test_children_keep_insertion_order(store):
    first = asyncio.run(store.create_folder("1", "First"))
    link = asyncio.run(store.create_link("1", "Docs", "https://docs.example.org"))
    last = asyncio.run(store.create_folder("1", "Last"))

    children = asyncio.run(store.list_children("1"))

    assert [child.id for child in children] == [first.id, link.id, last.id]
    assert children[1].is_link
    assert not children[0].is_link
    assert children[0].parent_id == "1"


def test_full_tree_nests_nodes(store):
    coding = asyncio.run(store.create_folder("1", "Coding"))
    link = asyncio.run(store.create_link(coding.id, "HTML", "https://example.org/html"))

    tree = asyncio.run(store.get_full_tree())
    bar = tree.children[0]

    assert [child.id for child in bar.children] == [coding.id]
    assert [child.id for child in bar.children[0].children] == [link.id]


def test_unknown_ids_raise(store, errors):
    with pytest.raises(errors.UnknownNodeError):
        asyncio.run(store.get_node("999"))
    with pytest.raises(errors.UnknownNodeError):
        asyncio.run(store.list_children("not-a-number"))


def test_links_cannot_hold_children(store, errors):
    link = asyncio.run(store.create_link("1", "Docs", "https://docs.example.org"))

    with pytest.raises(errors.StoreError, match="not a folder"):
        asyncio.run(store.create_folder(link.id, "Inside"))


def test_link_requires_url(store, errors):
    with pytest.raises(errors.StoreError, match="URL"):
        asyncio.run(store.create_link("1", "Nothing", ""))


def test_delete_refuses_non_empty_folders(store, errors):
    folder = asyncio.run(store.create_folder("1", "Coding"))
    asyncio.run(store.create_folder(folder.id, "HTML"))

    with pytest.raises(errors.StoreError, match="not empty"):
        asyncio.run(store.delete_node(folder.id))


def test_delete_removes_empty_folder(store, errors):
    folder = asyncio.run(store.create_folder("1", "Coding"))

    asyncio.run(store.delete_node(folder.id))

    with pytest.raises(errors.UnknownNodeError):
        asyncio.run(store.get_node(folder.id))


@pytest.mark.parametrize("node_id", ["0", "1", "2", "3"])
def test_system_roots_are_protected(store, errors, node_id):
    with pytest.raises(errors.StoreError, match="System folder"):
        asyncio.run(store.delete_node(node_id))
    with pytest.raises(errors.StoreError, match="System folder"):
        asyncio.run(store.move_node(node_id, "2"))


def test_move_between_folders(store):
    source = asyncio.run(store.create_folder("1", "Source"))
    target = asyncio.run(store.create_folder("2", "Target"))
    link = asyncio.run(store.create_link(source.id, "Docs", "https://docs.example.org"))

    moved = asyncio.run(store.move_node(link.id, target.id))

    assert moved.parent_id == target.id
    assert asyncio.run(store.list_children(source.id)) == []
    assert [child.id for child in asyncio.run(store.list_children(target.id))] == [link.id]


def test_move_into_own_subtree_is_rejected(store, errors):
    outer = asyncio.run(store.create_folder("1", "Outer"))
    inner = asyncio.run(store.create_folder(outer.id, "Inner"))

    with pytest.raises(errors.StoreError, match="own subtree"):
        asyncio.run(store.move_node(outer.id, inner.id))


def test_bookmark_rows_hold_only_tree_fields(sorter_env):
    models = importlib.import_module("models")

    assert set(models.BookmarkNode.model_fields) == {"id", "parent_id", "title", "url", "position"}
