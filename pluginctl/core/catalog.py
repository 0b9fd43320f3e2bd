"""
Plugin catalog.

The catalog records every installed plugin binary and which one is active in
the stand-alone namespace and in each server context. It is persisted as a
single YAML file and always loaded and saved as a unit:

    indexByPath:        installation path  -> PluginInfo
    indexByName:        name_target key    -> [installation paths]
    standAlonePlugins:  name_target key    -> active installation path
    serverPlugins:      context -> {name_target key -> active installation path}

Mutations re-read the file under an advisory lock (catalog.yaml.lock beside
it), apply the change and save before releasing, so concurrent writers in
separate handles or processes never drop each other's entries.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import yaml
from filelock import FileLock, Timeout
from pydantic import BaseModel, Field, ValidationError, field_validator

from pluginctl.config import Settings, get_settings
from pluginctl.lib.files import atomic_write_text, remove_file
from pluginctl.lib.typed_errors import (
    NotFoundError,
    PersistenceFailure,
    StoreCorrupt,
    StoreUnavailable,
)
from pluginctl.models.plugin import PluginInfo, Target, normalize_target

logger = logging.getLogger(__name__)

CATALOG_CACHE_FILE_NAME = "catalog.yaml"
CATALOG_LOCK_TIMEOUT = 30

# name_target key -> active installation path
PluginAssociation = dict[str, str]


def plugin_name_target(name: str, target: Optional[str]) -> str:
    """Key uniquely naming a plugin for a target.

    An empty (unknown) target gives the bare plugin name so records written
    before targets existed stay addressable.
    """
    target = normalize_target(target)
    if not target:
        return name
    return f"{name}_{target}"


class Catalog(BaseModel):
    """All installed-plugin indices, persisted together."""

    index_by_path: dict[str, PluginInfo] = Field(default_factory=dict, alias="indexByPath")
    index_by_name: dict[str, list[str]] = Field(default_factory=dict, alias="indexByName")
    standalone_plugins: PluginAssociation = Field(default_factory=dict, alias="standAlonePlugins")
    server_plugins: dict[str, PluginAssociation] = Field(default_factory=dict, alias="serverPlugins")

    model_config = {"populate_by_name": True}

    # Older or hand-edited cache files may carry nulls anywhere a map is expected

    @field_validator("standalone_plugins", mode="before")
    @classmethod
    def _null_association(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("server_plugins", mode="before")
    @classmethod
    def _null_server_associations(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {ctx: ({} if assoc is None else assoc) for ctx, assoc in v.items()}
        return v

    @field_validator("index_by_name", mode="before")
    @classmethod
    def _null_name_index(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {key: ([] if paths is None else paths) for key, paths in v.items()}
        return v

    @field_validator("index_by_path", mode="before")
    @classmethod
    def _null_path_index(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            fixed = {}
            for path, info in v.items():
                # The key is the installation path; older entries omitted it
                if isinstance(info, dict) and not info.get("installationPath"):
                    info = {**info, "installationPath": path}
                fixed[path] = info
            return fixed
        return v

    def association(self, context: str) -> PluginAssociation:
        """Active-plugin map for a context, created if absent. "" is stand-alone."""
        if not context:
            return self.standalone_plugins
        return self.server_plugins.setdefault(context, {})

    def is_referenced(self, path: str) -> bool:
        """True if any association or name index still points at ``path``."""
        if path in self.standalone_plugins.values():
            return True
        if any(path in assoc.values() for assoc in self.server_plugins.values()):
            return True
        return any(path in paths for paths in self.index_by_name.values())

    def to_yaml(self) -> str:
        data = self.model_dump(by_alias=True, mode="json")
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)


def reconcile_legacy_target(
    catalog: Catalog,
    context: str,
    name: str,
    target: Optional[str],
) -> list[str]:
    """Evict entries that conflict with a plugin just installed for ``target``.

    The unknown target used to stand for "global" and, earlier still, for
    "global or kubernetes". So installing a global or kubernetes plugin evicts
    an unknown-target entry of the same name, and installing an unknown-target
    plugin evicts both the global and the kubernetes entries.

    An evicted key loses its active entry in the context, its whole name
    index entry, and the path index entry of its active path unless that path
    is still referenced elsewhere. Works on the in-memory catalog only.

    Returns the evicted keys.
    """
    target = normalize_target(target)
    if target in (Target.GLOBAL.value, Target.KUBERNETES.value):
        stale_targets = [Target.UNKNOWN.value]
    elif target == Target.UNKNOWN.value:
        stale_targets = [Target.GLOBAL.value, Target.KUBERNETES.value]
    else:
        return []

    association = catalog.association(context)
    evicted: list[str] = []
    for stale_target in stale_targets:
        key = plugin_name_target(name, stale_target)
        old_path = association.pop(key, None)
        if old_path is None:
            continue
        catalog.index_by_name.pop(key, None)
        if not catalog.is_referenced(old_path):
            catalog.index_by_path.pop(old_path, None)
        evicted.append(key)
        logger.info(
            f"Removed catalog entry '{key}' superseded by target '{target or 'unknown'}'",
            extra={"context": context, "path": old_path},
        )
    return evicted


class CatalogCache:
    """Loads and saves the catalog file in one cache directory."""

    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CatalogCache":
        settings = settings or get_settings()
        return cls(settings.catalog_cache_dir)

    @property
    def path(self) -> Path:
        return self.cache_dir / CATALOG_CACHE_FILE_NAME

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(CATALOG_CACHE_FILE_NAME + ".lock")

    @contextmanager
    def locked(self, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the advisory catalog lock for a load-mutate-save sequence.

        Raises:
            PersistenceFailure: If the lock cannot be created or acquired in time
        """
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            if timeout is None:
                timeout = CATALOG_LOCK_TIMEOUT
            lock = FileLock(str(self.lock_path), timeout=timeout)
            lock.acquire()
        except (OSError, Timeout) as e:
            raise PersistenceFailure(f"failed to lock catalog cache file ({e})", self.path) from e
        try:
            yield
        finally:
            lock.release()

    def load(self) -> Catalog:
        """Read the catalog, or return an empty one if no file exists yet.

        Raises:
            StoreCorrupt: If the file is not a valid catalog document
            StoreUnavailable: If the file exists but cannot be read
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug(f"No catalog cache at {self.path}, starting empty")
            return Catalog()
        except OSError as e:
            raise StoreUnavailable(f"could not read catalog file {self.path}: {e}", self.path) from e

        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise StoreCorrupt(f"could not decode catalog file {self.path}: {e}", self.path) from e

        if data is None:
            return Catalog()
        if not isinstance(data, dict):
            raise StoreCorrupt(
                f"could not decode catalog file {self.path}: expected a mapping, "
                f"got {type(data).__name__}",
                self.path,
            )

        try:
            return Catalog.model_validate(data)
        except ValidationError as e:
            raise StoreCorrupt(f"invalid catalog file {self.path}: {e}", self.path) from e

    def save(self, catalog: Catalog) -> None:
        """Write the whole catalog, replacing the file atomically.

        Raises:
            PersistenceFailure: If the directory or file cannot be written
        """
        try:
            atomic_write_text(self.path, catalog.to_yaml())
        except OSError as e:
            raise PersistenceFailure(f"failed to write catalog cache file ({e})", self.path) from e

    def clean(self) -> bool:
        """Delete the catalog file. Returns False if there was nothing to delete."""
        try:
            removed = remove_file(self.path)
        except OSError as e:
            raise PersistenceFailure(f"failed to remove catalog cache file ({e})", self.path) from e
        if removed:
            logger.info(f"Removed catalog cache {self.path}")
        return removed

    def migrate(self) -> Catalog:
        """Rewrite an existing catalog in the current format."""
        catalog = self.load()
        self.save(catalog)
        return catalog


class ContextCatalog:
    """The catalog as seen from the stand-alone namespace or one server context.

    All mutations go through here and persist the entire shared catalog,
    because the path and name indices are shared by every context.
    """

    def __init__(self, catalog: Catalog, cache: CatalogCache, context: str = ""):
        self._catalog = catalog
        self._cache = cache
        self._context = context
        self._plugins = catalog.association(context)

    @classmethod
    def open(cls, context: str = "", cache: Optional[CatalogCache] = None) -> "ContextCatalog":
        """Load the shared catalog and bind it to ``context`` ("" for stand-alone).

        Raises:
            StoreUnavailable: If the catalog cannot be loaded (StoreCorrupt if unparseable)
        """
        cache = cache or CatalogCache.from_settings()
        return cls(cache.load(), cache, context)

    @property
    def context(self) -> str:
        return self._context

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    def upsert(self, plugin: PluginInfo) -> None:
        """Record ``plugin`` as installed and active in this context, then save.

        The catalog is re-read under the lock so entries written through other
        handles since this one was opened are kept.
        """
        key = plugin_name_target(plugin.name, plugin.target)
        path = plugin.installation_path

        with self._cache.locked():
            catalog = self._cache.load()
            catalog.association(self._context)[key] = path
            catalog.index_by_path[path] = plugin

            paths = catalog.index_by_name.setdefault(key, [])
            if path not in paths:
                paths.append(path)

            reconcile_legacy_target(catalog, self._context, plugin.name, plugin.target)
            self._cache.save(catalog)

        self._rebind(catalog)
        logger.debug(
            f"Upserted {key} {plugin.version}",
            extra={"context": self._context, "path": path},
        )

    def get(self, key: str) -> Optional[PluginInfo]:
        """Active plugin for a name_target key, or None."""
        path = self._plugins.get(key)
        if path is None:
            return None
        return self._catalog.index_by_path.get(path)

    def require(self, key: str) -> PluginInfo:
        """Like get(), but raises NotFoundError on a miss."""
        plugin = self.get(key)
        if plugin is None:
            raise NotFoundError(key, self._context)
        return plugin

    def installed_versions(self, key: str) -> list[PluginInfo]:
        """Every recorded installation for a key, active or not, in install order."""
        return [
            self._catalog.index_by_path[path]
            for path in self._catalog.index_by_name.get(key, [])
            if path in self._catalog.index_by_path
        ]

    def list(self) -> list[PluginInfo]:
        """All plugins active in this context, in no particular order."""
        plugins: list[PluginInfo] = []
        for key, path in self._plugins.items():
            plugin = self._catalog.index_by_path.get(path)
            if plugin is None:
                logger.warning(f"Catalog entry '{key}' points at unknown path {path}")
                continue
            plugins.append(plugin)
        return plugins

    # list() shadows the builtin for the rest of the class body

    def delete(self, key: str) -> None:
        """Deactivate a plugin in this context and save.

        The binary stays recorded in the path and name indices. Deleting a key
        that is not present is a no-op, but the catalog is still saved.
        """
        with self._cache.locked():
            catalog = self._cache.load()
            removed = catalog.association(self._context).pop(key, None)
            self._cache.save(catalog)

        self._rebind(catalog)
        if removed is not None:
            logger.debug(f"Deleted {key}", extra={"context": self._context})

    def _rebind(self, catalog: Catalog) -> None:
        self._catalog = catalog
        self._plugins = catalog.association(self._context)
