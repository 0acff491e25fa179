"""
lookup.py

External type and asset lookups. Three questions are answered by a backend:
the visual-asset reference for a block name, the block name for a fixture type and the
fixture type for a block name. Results are memoised in an injected LookupCache so repeated
requests in one session do not hit the backend again.

HttpLookupBackend talks to the fixture catalogue service over HTTP using httpx.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional, Tuple

import httpx

from .editor_common import EditorSettings, LookupFailedError

logger = logging.getLogger(__name__)

# Cache keys are namespaced by question
_ASSET = "asset"
_BLOCK = "block"
_TYPE = "type"


class LookupCache:
    """Plain in-memory cache with get/set/has."""

    def __init__(self):
        self._entries: Dict[Tuple[str, str], Any] = {}

    def get(self, namespace: str, key: str) -> Optional[Any]:
        return self._entries.get((namespace, key))

    def set(self, namespace: str, key: str, value: Any) -> None:
        self._entries[(namespace, key)] = value

    def has(self, namespace: str, key: str) -> bool:
        return (namespace, key) in self._entries

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class LookupBackend(ABC):
    """Source of truth for block/type/asset relations."""

    @abstractmethod
    async def fetch_asset_url(self, block_name: str) -> Optional[str]:
        """Visual asset reference for a block name, or None if the block is unknown."""
        pass

    @abstractmethod
    async def fetch_block_for_type(self, fixture_type: str) -> Optional[str]:
        pass

    @abstractmethod
    async def fetch_block_types(self) -> Dict[str, str]:
        """Full block name -> fixture type mapping."""
        pass


class StaticLookupBackend(LookupBackend):
    """Backend answering from fixed tables. Used for offline sessions and demos."""

    def __init__(self, asset_urls: Optional[Dict[str, str]] = None,
                 block_types: Optional[Dict[str, str]] = None):
        self.asset_urls: Dict[str, str] = dict(asset_urls or {})
        self.block_types: Dict[str, str] = dict(block_types or {})

    async def fetch_asset_url(self, block_name: str) -> Optional[str]:
        return self.asset_urls.get(block_name)

    async def fetch_block_for_type(self, fixture_type: str) -> Optional[str]:
        for block, ftype in self.block_types.items():
            if ftype == fixture_type:
                return block
        return None

    async def fetch_block_types(self) -> Dict[str, str]:
        return dict(self.block_types)


class HttpLookupBackend(LookupBackend):
    """
    Fixture catalogue over HTTP.

    Endpoints (relative to base_url):
      POST /api/fixtures/blocks            body: [block names] -> [{block_name, fixture_type, glb_url}]
      GET  /api/fixtures/block-types       -> {block_fixture_types: {block: type}}
    """

    def __init__(self, base_url: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # Injected in tests (httpx.MockTransport)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout,
                                 follow_redirects=True, transport=self._transport)

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise LookupFailedError(
                f"Lookup {method} {path} failed: HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise LookupFailedError(f"Lookup {method} {path} failed: {e}") from e
        except ValueError as e:
            raise LookupFailedError(f"Lookup {method} {path} returned invalid JSON") from e

    async def fetch_asset_url(self, block_name: str) -> Optional[str]:
        data = await self._request_json("POST", "/api/fixtures/blocks", json=[block_name])
        if isinstance(data, list):
            for entry in data:
                if isinstance(entry, dict) and entry.get("block_name") == block_name:
                    return entry.get("glb_url") or None
        return None

    async def fetch_block_for_type(self, fixture_type: str) -> Optional[str]:
        # The catalogue has no reverse endpoint; answer from the full mapping
        for block, ftype in (await self.fetch_block_types()).items():
            if ftype == fixture_type:
                return block
        return None

    async def fetch_block_types(self) -> Dict[str, str]:
        data = await self._request_json("GET", "/api/fixtures/block-types")
        mapping: Dict[str, str] = {}
        if isinstance(data, dict):
            source = data.get("block_fixture_types", data)
            for block, ftype in source.items():
                if isinstance(ftype, str):
                    mapping[block] = ftype
        elif isinstance(data, list):
            for entry in data:
                if isinstance(entry, dict):
                    block = entry.get("block_name") or entry.get("blockName")
                    ftype = entry.get("fixture_type") or entry.get("fixtureType")
                    if block and ftype:
                        mapping[block] = ftype
        logger.info(f"Loaded {len(mapping)} block to fixture type mappings")
        return mapping


class AssetLookupService:
    """
    Cached front for a LookupBackend.

    Every method raises LookupFailedError when the answer cannot be resolved, including when
    the backend answers that the key is unknown. Negative answers are not cached.
    """

    def __init__(self, backend: LookupBackend, cache: Optional[LookupCache] = None):
        self.backend = backend
        self.cache = cache if cache is not None else LookupCache()
        self._block_types_loaded = False

    @staticmethod
    def from_settings(settings: EditorSettings) -> Optional["AssetLookupService"]:
        """HTTP-backed service for the configured catalogue, or None if no catalogue is configured."""
        if not settings.lookup_base_url:
            return None
        return AssetLookupService(HttpLookupBackend(settings.lookup_base_url, settings.lookup_timeout))

    async def asset_url_for_block(self, block_name: str) -> str:
        if self.cache.has(_ASSET, block_name):
            return self.cache.get(_ASSET, block_name)
        url = await self.backend.fetch_asset_url(block_name)
        if not url:
            raise LookupFailedError(f"No visual asset known for block '{block_name}'.")
        self.cache.set(_ASSET, block_name, url)
        return url

    async def block_for_type(self, fixture_type: str) -> str:
        if self.cache.has(_BLOCK, fixture_type):
            return self.cache.get(_BLOCK, fixture_type)
        block = await self.backend.fetch_block_for_type(fixture_type)
        if not block:
            raise LookupFailedError(f"No block known for fixture type '{fixture_type}'.")
        self.cache.set(_BLOCK, fixture_type, block)
        return block

    async def type_for_block(self, block_name: str) -> str:
        if self.cache.has(_TYPE, block_name):
            return self.cache.get(_TYPE, block_name)
        await self._load_block_types()
        if self.cache.has(_TYPE, block_name):
            return self.cache.get(_TYPE, block_name)
        raise LookupFailedError(f"No fixture type known for block '{block_name}'.")

    async def block_type_mapping(self, block_names: Iterable[str]) -> Dict[str, str]:
        """
        Fixture type for each block name. Unknown blocks map to themselves; a backend failure
        is raised so the caller can decide whether to degrade.
        """
        await self._load_block_types()
        mapping = {}
        for block in block_names:
            cached = self.cache.get(_TYPE, block)
            mapping[block] = cached if cached else block
        return mapping

    async def _load_block_types(self) -> None:
        if self._block_types_loaded:
            return
        for block, ftype in (await self.backend.fetch_block_types()).items():
            self.cache.set(_TYPE, block, ftype)
            if not self.cache.has(_BLOCK, ftype):
                self.cache.set(_BLOCK, ftype, block)
        self._block_types_loaded = True
