"""生成履歴の保存。"""

from __future__ import annotations

import json
import logging
import os
import secrets
import tempfile
import time
from collections.abc import Iterable
from pathlib import Path
from threading import Lock
from typing import Any

logger = logging.getLogger(__name__)


class HistoryStore:
    """JSONファイルベースの生成履歴。新しいものが先頭。

    path が None のときはメモリ上のみで保持する。
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._lock = Lock()
        self._entries: list[dict[str, Any]] = self._load()

    @property
    def path(self) -> Path | None:
        return self._path

    def _load(self) -> list[dict[str, Any]]:
        if self._path is None or not self._path.exists():
            return []
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            quarantine = self._path.with_suffix(self._path.suffix + ".broken")
            logger.warning("history | unreadable file moved to %s", quarantine)
            try:
                self._path.replace(quarantine)
            except OSError:
                pass
            return []
        if not isinstance(payload, list):
            return []
        return [entry for entry in payload if isinstance(entry, dict)]

    def _flush(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps(self._entries, ensure_ascii=False, separators=(",", ":"), default=str)
        fd, tmp_path = tempfile.mkstemp(
            prefix=self._path.name,
            suffix=".tmp",
            dir=str(self._path.parent),
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            Path(tmp_path).replace(self._path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    def save(self, entry: dict[str, Any]) -> dict[str, Any]:
        """履歴を追加する。

        Args:
            entry: 保存内容（type, provider, prompt, tags など）。

        Returns:
            id と timestamp を付与した保存済みエントリ。
        """

        stored = {
            **entry,
            "id": f"gen_{int(time.time() * 1000)}_{secrets.token_hex(4)}",
            "timestamp": int(time.time() * 1000),
            "favorite": bool(entry.get("favorite", False)),
            "tags": list(entry.get("tags") or []),
        }
        with self._lock:
            self._entries.insert(0, stored)
            self._flush()
        return dict(stored)

    def delete(self, entry_id: str) -> bool:
        """履歴を削除する。存在しない場合は False。"""

        with self._lock:
            before = len(self._entries)
            self._entries = [entry for entry in self._entries if entry.get("id") != entry_id]
            if len(self._entries) == before:
                return False
            self._flush()
        return True

    def toggle_favorite(self, entry_id: str) -> bool | None:
        """お気に入りを反転する。

        Returns:
            反転後の状態。存在しない場合は None。
        """

        with self._lock:
            for entry in self._entries:
                if entry.get("id") == entry_id:
                    entry["favorite"] = not entry.get("favorite", False)
                    self._flush()
                    return bool(entry["favorite"])
        return None

    def get(self, entry_id: str) -> dict[str, Any] | None:
        for entry in self._entries:
            if entry.get("id") == entry_id:
                return dict(entry)
        return None

    def all(self) -> list[dict[str, Any]]:
        return [dict(entry) for entry in self._entries]

    def filter(
        self,
        *,
        type: str | None = None,
        provider: str | None = None,
        favorite: bool | None = None,
        tags: Iterable[str] | None = None,
    ) -> list[dict[str, Any]]:
        """条件に一致する履歴を返す。tags は全タグを含むものに一致する。"""

        wanted_tags = set(tags or [])
        matched: list[dict[str, Any]] = []
        for entry in self._entries:
            if type is not None and entry.get("type") != str(type):
                continue
            if provider is not None and entry.get("provider") != str(provider):
                continue
            if favorite is not None and bool(entry.get("favorite")) != favorite:
                continue
            if wanted_tags and not wanted_tags.issubset(entry.get("tags") or []):
                continue
            matched.append(dict(entry))
        return matched

    def clear(self) -> None:
        with self._lock:
            self._entries = []
            self._flush()

    def __len__(self) -> int:
        return len(self._entries)
