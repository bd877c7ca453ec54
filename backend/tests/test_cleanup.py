import asyncio

import pytest


@pytest.fixture()
def cleanup(sorter_env):
    return sorter_env["cleanup"]


def _folder(store, parent_id, title):
    return asyncio.run(store.create_folder(parent_id, title))


def _ids(store, parent_id):
    return [child.id for child in asyncio.run(store.list_children(parent_id))]


def test_cascading_removal_keeps_protected_top(sorter_env, cleanup, store):
    a = _folder(store, "1", "A")
    b = _folder(store, a.id, "B")
    _folder(store, b.id, "C")
    protected = sorter_env["bookmark_store"].SYSTEM_ROOT_IDS | {a.id}

    removed = asyncio.run(cleanup.remove_empty_folders(store, protected_ids=protected))

    assert removed == 2
    assert _ids(store, "1") == [a.id]
    assert _ids(store, a.id) == []


def test_unprotected_chain_is_removed_entirely(cleanup, store):
    a = _folder(store, "1", "A")
    b = _folder(store, a.id, "B")
    _folder(store, b.id, "C")

    assert asyncio.run(cleanup.remove_empty_folders(store)) == 3
    assert _ids(store, "1") == []


def test_folders_with_links_survive(cleanup, store):
    coding = _folder(store, "1", "Coding")
    guides = _folder(store, coding.id, "Guides")
    empty = _folder(store, coding.id, "Empty")
    link = asyncio.run(store.create_link(guides.id, "HTML guide", "https://example.org/html"))

    removed = asyncio.run(cleanup.remove_empty_folders(store))

    assert removed == 1
    assert _ids(store, coding.id) == [guides.id]
    assert _ids(store, guides.id) == [link.id]
    assert empty.id not in _ids(store, coding.id)


def test_system_roots_are_never_removed(sorter_env, cleanup, store):
    assert asyncio.run(cleanup.remove_empty_folders(store)) == 0
    tree = asyncio.run(store.get_full_tree())
    assert tree.id == "0"
    assert [child.id for child in tree.children] == ["1", "2", "3"]


def test_delete_failure_keeps_parent(sorter_env, cleanup, store, monkeypatch):
    errors = sorter_env["errors"]
    parent = _folder(store, "2", "Parent")
    stubborn = _folder(store, parent.id, "Stubborn")
    other = _folder(store, parent.id, "Other")

    original_delete = store.delete_node
    attempted = []

    async def flaky_delete(node_id):
        attempted.append(node_id)
        if node_id == stubborn.id:
            raise errors.StoreError("changed concurrently")
        await original_delete(node_id)

    monkeypatch.setattr(store, "delete_node", flaky_delete)

    removed = asyncio.run(cleanup.remove_empty_folders(store))

    assert removed == 1
    assert attempted == [stubborn.id, other.id]
    assert _ids(store, "2") == [parent.id]
    assert _ids(store, parent.id) == [stubborn.id]


def test_non_empty_child_blocks_parent_even_after_sibling_removal(cleanup, store):
    parent = _folder(store, "1", "Parent")
    _folder(store, parent.id, "Empty")
    keep = _folder(store, parent.id, "Keep")
    asyncio.run(store.create_link(keep.id, "Docs", "https://docs.example.org"))

    assert asyncio.run(cleanup.remove_empty_folders(store)) == 1
    assert _ids(store, parent.id) == [keep.id]


def test_default_parent_folder_is_kept(sorter_env, cleanup, store, monkeypatch):
    inbox = _folder(store, "1", "Inbox")
    runtime_settings = sorter_env["runtime_settings"]
    monkeypatch.setattr(runtime_settings.S, "DEFAULT_PARENT_ID", inbox.id)

    assert asyncio.run(cleanup.remove_empty_folders(store)) == 0
    assert _ids(store, "1") == [inbox.id]

    manager = sorter_env["bookmark_manager"].BookmarkManager(store)
    node = asyncio.run(manager.create_bookmark("https://news.example.org", "News", ["News"]))
    news = asyncio.run(store.get_node(node.parent_id))
    assert news.parent_id == inbox.id
