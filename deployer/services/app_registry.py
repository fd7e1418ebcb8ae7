import asyncio
import json
import pathlib
from typing import Dict, Optional

from deployer.core.logging_config import get_logger

logger = get_logger(__name__)


class AppRegistry:
    """
    Known applications, mapping app name to repository url.

    Shared by every deployment running in the process. Writes are serialized
    under one lock, so concurrent upserts of the same name resolve to the
    last writer without interleaving.
    """

    def __init__(self, apps: Optional[Dict[str, str]] = None):
        self._apps: Dict[str, str] = dict(apps or {})
        self._lock = asyncio.Lock()

    async def upsert(self, name: str, url: str) -> None:
        async with self._lock:
            self._apps[name] = url
            logger.info(f"Registered application '{name}' -> '{url}'")
            await self._persist()

    async def get(self, name: str) -> Optional[str]:
        return self._apps.get(name)

    async def remove(self, name: str) -> bool:
        async with self._lock:
            if name not in self._apps:
                return False
            del self._apps[name]
            logger.info(f"Removed application '{name}' from registry")
            await self._persist()
            return True

    async def snapshot(self) -> Dict[str, str]:
        return dict(self._apps)

    async def _persist(self) -> None:
        """Hook for subclasses; called with the lock held."""
        return None


class FileAppRegistry(AppRegistry):
    """Registry persisted as a JSON object in a local file."""

    def __init__(self, path: str):
        self.path = pathlib.Path(path)
        apps: Dict[str, str] = {}
        if self.path.exists():
            try:
                loaded = json.loads(self.path.read_text(encoding='utf-8'))
                if isinstance(loaded, dict):
                    apps = {str(k): str(v) for k, v in loaded.items()}
                else:
                    logger.warning(f"Registry file {self.path} does not contain a JSON object. Starting empty.")
            except json.JSONDecodeError as e:
                logger.warning(f"Registry file {self.path} is not valid JSON ({e}). Starting empty.")
        super().__init__(apps)

    async def _persist(self) -> None:
        content = json.dumps(self._apps, indent=2, sort_keys=True)
        await asyncio.to_thread(self._write, content)

    def _write(self, content: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(content, encoding='utf-8')
