"""Local disk implementation of the file store."""

import asyncio
import shutil
from pathlib import Path

from accounts.domain.repository import FileStore


class LocalFileStore(FileStore):
    """FileStore over the local filesystem.

    Blocking calls run in a worker thread.
    """

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(Path(path).exists)

    async def mkdir(self, path: str) -> None:
        await asyncio.to_thread(Path(path).mkdir, parents=True, exist_ok=True)

    async def rename(self, source: str, destination: str) -> None:
        def _move() -> None:
            target = Path(destination)
            if target.exists():
                raise FileExistsError(destination)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(source, destination)

        await asyncio.to_thread(_move)

    async def read_file(self, path: str) -> str:
        return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")

    async def write_file(self, path: str, content: str) -> None:
        def _write() -> None:
            target = Path(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")

        await asyncio.to_thread(_write)

    async def remove(self, path: str) -> None:
        await asyncio.to_thread(Path(path).unlink)
