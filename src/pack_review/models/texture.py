"""Models for textures and the mods they are extracted from."""

from __future__ import annotations

from sqlalchemy import JSON, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pack_review.db.ids import new_id
from pack_review.db.session import Base


class Texture(Base):
    """A default texture that contributions can target.

    The same image can ship under several names across mods; only the first
    name is kept in ``name``, the others accumulate in ``aliases``.
    """

    __tablename__ = "texture"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    aliases: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    file: Mapped[str] = mapped_column(Text, nullable=False)
    hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    linked_textures: Mapped[list[LinkedTexture]] = relationship(
        "LinkedTexture",
        back_populates="texture",
        cascade="all, delete-orphan",
    )


class Mod(Base):
    """A mod identified by its Forge mod id."""

    __tablename__ = "mod"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    forge_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    authors: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)

    versions: Mapped[list[ModVersion]] = relationship(
        "ModVersion",
        back_populates="mod",
        cascade="all, delete-orphan",
    )


class ModVersion(Base):
    """One released version of a mod."""

    __tablename__ = "mod_version"
    __table_args__ = (UniqueConstraint("mod_id", "version", name="uq_mod_version"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    mod_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("mod.id", ondelete="CASCADE"),
        nullable=False,
    )
    version: Mapped[str] = mapped_column(Text, nullable=False)
    mc_version: Mapped[str] = mapped_column(Text, nullable=False)

    mod: Mapped[Mod] = relationship("Mod", back_populates="versions")
    linked_textures: Mapped[list[LinkedTexture]] = relationship(
        "LinkedTexture",
        back_populates="mod_version",
        cascade="all, delete-orphan",
    )


class LinkedTexture(Base):
    """Where a texture appears inside a mod version's jar."""

    __tablename__ = "linked_texture"
    __table_args__ = (
        UniqueConstraint("mod_version_id", "asset_path", name="uq_linked_texture_path"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    texture_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("texture.id", ondelete="CASCADE"),
        nullable=False,
    )
    mod_version_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("mod_version.id", ondelete="CASCADE"),
        nullable=False,
    )
    asset_path: Mapped[str] = mapped_column(Text, nullable=False)

    texture: Mapped[Texture] = relationship("Texture", back_populates="linked_textures")
    mod_version: Mapped[ModVersion] = relationship("ModVersion", back_populates="linked_textures")
