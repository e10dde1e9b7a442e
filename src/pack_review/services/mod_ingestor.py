"""Extract mod metadata and default textures from uploaded JAR archives."""

from __future__ import annotations

import io
import json
import logging
import re
import zipfile
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from pack_review.core.errors import InvalidArchiveError
from pack_review.models import LinkedTexture, Mod, ModVersion, Texture
from pack_review.schemas.mod import UNKNOWN_VERSION, MCModInfo
from pack_review.services.content_store import ContentStore, get_content_store

logger = logging.getLogger(__name__)

MANIFEST_NAME = "mcmod.info"

# "examplemod-1.2.3.jar", "example_mod_v2.0.jar", "Example Mod 1.7.10-4.1.jar"
_VERSION_SUFFIX = re.compile(r"^(?P<modid>.+?)[-_ ]+v?\d")


@dataclass
class ExtractedMetadata:
    """One mod version found in an archive and the textures linked to it."""

    mod_id: str
    forge_id: str
    name: str
    version: str
    mc_version: str
    mod_version_id: str
    texture_ids: list[str] = field(default_factory=list)
    created_textures: int = 0
    aliased_textures: int = 0
    from_manifest: bool = True


@dataclass
class _TextureBatch:
    texture_ids: list[str] = field(default_factory=list)
    # asset path -> texture
    by_path: dict[str, Texture] = field(default_factory=dict)
    created: int = 0
    aliased: int = 0


def infer_modid(filename: str) -> str:
    """Guess a mod id from an archive filename (``examplemod-1.2.3.jar`` -> ``examplemod``)."""
    stem = PurePosixPath(filename.replace("\\", "/")).name
    if stem.lower().endswith((".jar", ".zip")):
        stem = stem[:-4]
    match = _VERSION_SUFFIX.match(stem)
    modid = match.group("modid") if match else stem
    return modid.strip(" -_").lower() or "unknown"


def parse_manifest(raw: bytes) -> list[dict[str, Any]]:
    """Return the raw entries of an ``mcmod.info`` file.

    Both the legacy list form and the ``{"modList": [...]}`` form are
    accepted. Anything else yields an empty list.
    """
    try:
        data = json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, ValueError) as exc:
        logger.warning("Unparseable %s: %s", MANIFEST_NAME, exc)
        return []
    if isinstance(data, dict):
        data = data.get("modList", [])
    if not isinstance(data, list):
        return []
    return [entry for entry in data if isinstance(entry, dict)]


class ModArtifactIngestor:
    """Turn a mod archive into Mod, ModVersion, Texture and LinkedTexture rows."""

    def __init__(self, session: Session, store: ContentStore | None = None) -> None:
        self.session = session
        self.store = store or get_content_store()

    def ingest(self, archive_bytes: bytes, filename: str) -> list[ExtractedMetadata]:
        """Ingest one archive and commit.

        Each declared mod is handled on its own: an entry that cannot be
        used is skipped with a warning, the others are still ingested. When
        the archive has no usable manifest, a single entry is inferred from
        ``filename``.

        Raises:
            InvalidArchiveError: If the bytes are not a ZIP/JAR archive.
            StorageError: If an extracted texture cannot be stored.
        """
        try:
            archive = zipfile.ZipFile(io.BytesIO(archive_bytes))
        except (zipfile.BadZipFile, ValueError) as exc:
            raise InvalidArchiveError(f"'{filename}' is not a valid JAR archive") from exc

        stored: list[str] = []
        try:
            with archive:
                infos = self._read_infos(archive)
                from_manifest = bool(infos)
                if not infos:
                    modid = infer_modid(filename)
                    logger.info("No usable %s in %s, inferred mod id '%s'", MANIFEST_NAME, filename, modid)
                    infos = [MCModInfo(modid=modid, name=modid)]

                textures = self._extract_textures(archive, stored)

                results = []
                for info in infos:
                    mod = self._get_or_create_mod(info)
                    mod_version = self._get_or_create_version(mod, info)
                    self._link(mod_version, textures)
                    results.append(
                        ExtractedMetadata(
                            mod_id=mod.id,
                            forge_id=mod.forge_id,
                            name=mod.name,
                            version=mod_version.version,
                            mc_version=mod_version.mc_version,
                            mod_version_id=mod_version.id,
                            texture_ids=list(textures.texture_ids),
                            created_textures=textures.created,
                            aliased_textures=textures.aliased,
                            from_manifest=from_manifest,
                        )
                    )
            self.session.commit()
            logger.info(
                "Ingested %s: %d mod version(s), %d new texture(s)",
                filename,
                len(results),
                textures.created,
            )
        except Exception:
            self.session.rollback()
            for locator in stored:
                self.store.remove(locator)
            raise
        return results

    def _read_infos(self, archive: zipfile.ZipFile) -> list[MCModInfo]:
        try:
            raw = archive.read(MANIFEST_NAME)
        except KeyError:
            return []

        infos: list[MCModInfo] = []
        seen: set[tuple[str, str]] = set()
        for entry in parse_manifest(raw):
            try:
                info = MCModInfo.model_validate(entry)
            except ValidationError as exc:
                logger.warning("Skipping %s entry %r: %s", MANIFEST_NAME, entry.get("modid"), exc)
                continue
            key = (info.modid, info.version)
            if key not in seen:
                seen.add(key)
                infos.append(info)
        return infos

    def _extract_textures(self, archive: zipfile.ZipFile, stored: list[str]) -> _TextureBatch:
        batch = _TextureBatch()
        # Pending rows are not visible to queries before a flush.
        by_hash: dict[str, Texture] = {}

        for entry in archive.infolist():
            path = entry.filename
            if entry.is_dir() or not path.startswith("assets/") or not path.lower().endswith(".png"):
                continue

            data = archive.read(entry)
            content_hash = self.store.hash(data)
            name = PurePosixPath(path).stem

            texture = by_hash.get(content_hash) or self.session.scalars(
                select(Texture).where(Texture.hash == content_hash)
            ).first()

            if texture is None:
                locator, _ = self.store.store(data, PurePosixPath(path).name, prefix="textures")
                stored.append(locator)
                texture = Texture(name=name, aliases=[], file=locator, hash=content_hash)
                self.session.add(texture)
                batch.created += 1
            elif name != texture.name and name not in texture.aliases:
                # Reassign so the JSON column is marked dirty.
                texture.aliases = [*texture.aliases, name]
                batch.aliased += 1

            by_hash[content_hash] = texture
            batch.by_path[path] = texture

        self.session.flush()
        batch.texture_ids = list(dict.fromkeys(texture.id for texture in batch.by_path.values()))
        return batch

    def _get_or_create_mod(self, info: MCModInfo) -> Mod:
        mod = self.session.scalars(select(Mod).where(Mod.forge_id == info.modid)).first()
        if mod is None:
            mod = Mod(
                forge_id=info.modid,
                name=info.name or info.modid,
                description=info.description,
                authors=info.author_list,
                url=info.url,
            )
            self.session.add(mod)
            self.session.flush()
        return mod

    def _get_or_create_version(self, mod: Mod, info: MCModInfo) -> ModVersion:
        mod_version = self.session.scalars(
            select(ModVersion).where(ModVersion.mod_id == mod.id, ModVersion.version == info.version)
        ).first()
        if mod_version is None:
            mod_version = ModVersion(mod_id=mod.id, version=info.version, mc_version=info.mcversion)
            self.session.add(mod_version)
            self.session.flush()
        elif mod_version.mc_version == UNKNOWN_VERSION and info.mcversion != UNKNOWN_VERSION:
            mod_version.mc_version = info.mcversion
        return mod_version

    def _link(self, mod_version: ModVersion, batch: _TextureBatch) -> None:
        linked = set(
            self.session.scalars(
                select(LinkedTexture.asset_path).where(LinkedTexture.mod_version_id == mod_version.id)
            )
        )
        for path, texture in batch.by_path.items():
            if path in linked:
                continue
            self.session.add(
                LinkedTexture(texture_id=texture.id, mod_version_id=mod_version.id, asset_path=path)
            )
        self.session.flush()
