"""生成履歴のテスト。"""

from __future__ import annotations

import json
from pathlib import Path

from oracleworld.history import HistoryStore


def test_save_persists_newest_first(tmp_path: Path) -> None:
    path = tmp_path / "history" / "generations.json"
    store = HistoryStore(path)

    first = store.save({"type": "text", "provider": "openai", "prompt": "one"})
    second = store.save({"type": "image", "provider": "replicate", "prompt": "two", "tags": ["fantasy"]})

    assert first["id"] != second["id"]
    assert first["favorite"] is False
    assert [entry["prompt"] for entry in store.all()] == ["two", "one"]

    reloaded = HistoryStore(path)
    assert [entry["id"] for entry in reloaded.all()] == [second["id"], first["id"]]
    assert json.loads(path.read_text(encoding="utf-8"))[0]["tags"] == ["fantasy"]
    assert [p.name for p in path.parent.iterdir()] == ["generations.json"]


def test_favorite_delete_and_filter() -> None:
    store = HistoryStore()
    a = store.save({"type": "text", "provider": "openai", "tags": ["npc", "tavern"]})
    b = store.save({"type": "image", "provider": "openai", "tags": ["npc"]})
    store.save({"type": "image", "provider": "replicate"})

    assert store.toggle_favorite(b["id"]) is True
    assert store.toggle_favorite("missing") is None

    assert [e["id"] for e in store.filter(favorite=True)] == [b["id"]]
    assert len(store.filter(type="image")) == 2
    assert len(store.filter(type="image", provider="openai")) == 1
    assert [e["id"] for e in store.filter(tags=["npc", "tavern"])] == [a["id"]]

    assert store.delete(a["id"]) is True
    assert store.delete(a["id"]) is False
    assert store.get(a["id"]) is None
    assert store.get(b["id"])["favorite"] is True
    assert len(store) == 2

    store.clear()
    assert store.all() == []


def test_returned_entries_are_copies() -> None:
    store = HistoryStore()
    saved = store.save({"type": "text", "provider": "openai"})
    store.get(saved["id"])["favorite"] = True

    assert store.get(saved["id"])["favorite"] is False


def test_corrupted_file_is_quarantined(tmp_path: Path) -> None:
    path = tmp_path / "generations.json"
    path.write_text("{broken", encoding="utf-8")

    store = HistoryStore(path)

    assert store.all() == []
    assert (tmp_path / "generations.json.broken").exists()
    store.save({"type": "text", "provider": "openai"})
    assert len(json.loads(path.read_text(encoding="utf-8"))) == 1
