"""Client-side key/value storage used for the session id and offline progress.

Plays the part browser ``localStorage`` plays in the web client: string keys,
string values, and the possibility that the whole thing is unavailable.
"""
from __future__ import annotations
import json
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Protocol


class StorageUnavailableError(Exception):
	"""Raised when the underlying storage cannot be read or written."""


class KeyValueStorage(Protocol):
	def get_item(self, key: str) -> Optional[str]: ...

	def set_item(self, key: str, value: str) -> None: ...

	def remove_item(self, key: str) -> None: ...

	def keys(self) -> List[str]: ...


class MemoryStorage:
	def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
		self._data: Dict[str, str] = dict(initial or {})

	def get_item(self, key: str) -> Optional[str]:
		return self._data.get(key)

	def set_item(self, key: str, value: str) -> None:
		self._data[key] = value

	def remove_item(self, key: str) -> None:
		self._data.pop(key, None)

	def keys(self) -> List[str]:
		return list(self._data)


class JsonFileStorage:
	"""All entries kept in one JSON object on disk.

	Every write rewrites the file through a temp file and ``os.replace`` so a
	crash mid-write leaves the previous contents intact.
	"""

	def __init__(self, path: Path | str) -> None:
		self.path = Path(path)

	def _read(self) -> Dict[str, str]:
		try:
			raw = self.path.read_text(encoding="utf-8")
		except FileNotFoundError:
			return {}
		except OSError as e:
			raise StorageUnavailableError(f"cannot read {self.path}: {e}") from e
		except UnicodeDecodeError as e:
			raise StorageUnavailableError(f"{self.path} is not valid UTF-8") from e
		if not raw.strip():
			return {}
		try:
			data = json.loads(raw)
		except ValueError as e:
			raise StorageUnavailableError(f"{self.path} is not valid JSON") from e
		if not isinstance(data, dict):
			raise StorageUnavailableError(f"{self.path} does not hold a JSON object")
		return {str(k): str(v) for k, v in data.items()}

	def _write(self, data: Dict[str, str]) -> None:
		try:
			self.path.parent.mkdir(parents=True, exist_ok=True)
			fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".progress-", suffix=".tmp")
			try:
				with os.fdopen(fd, "w", encoding="utf-8") as fh:
					json.dump(data, fh)
				os.replace(tmp, self.path)
			except BaseException:
				Path(tmp).unlink(missing_ok=True)
				raise
		except OSError as e:
			raise StorageUnavailableError(f"cannot write {self.path}: {e}") from e

	def get_item(self, key: str) -> Optional[str]:
		return self._read().get(key)

	def set_item(self, key: str, value: str) -> None:
		data = self._read()
		data[key] = value
		self._write(data)

	def remove_item(self, key: str) -> None:
		data = self._read()
		if key in data:
			del data[key]
			self._write(data)

	def keys(self) -> List[str]:
		return list(self._read())
