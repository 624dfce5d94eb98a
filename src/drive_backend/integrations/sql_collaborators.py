"""SQLModel-backed implementations of the share collaborator contracts."""

from __future__ import annotations

from sqlmodel.ext.asyncio.session import AsyncSession

from drive_backend.config import Settings
from drive_backend.domain.collaborators import (
    ID_KIND_SHARE,
    Entry,
    IdCodec,
    PermissionSet,
    ShareCollaborators,
    ShareOwner,
    ShareRecord,
    ShareValidator,
    check_share_valid,
)
from drive_backend.domain.errors import (
    EntryNotFoundError,
    InvalidIdError,
    ShareExpiredError,
    ShareNotFoundError,
)
from drive_backend.domain.share_status import is_share_unlocked
from drive_backend.domain.share_uri import FILESYSTEM_SHARE, ShareUri
from drive_backend.integrations.site_settings import SettingsSiteProvider
from drive_backend.models import FILE_TYPE_FOLDER, File, Share, User
from drive_backend.repositories import files_repo, shares_repo, users_repo


def entry_from_file(row: File) -> Entry:
    if row.id is None:
        raise EntryNotFoundError("file row missing id")
    return Entry(
        id=int(row.id),
        kind="folder" if row.type == FILE_TYPE_FOLDER else "file",
        name=row.name,
        size=int(row.size or 0),
        display_name=row.display_name or None,
    )


def record_from_share(share: Share, *, owner: User | None, root: File | None) -> ShareRecord:
    if share.id is None:
        raise ShareNotFoundError("share row missing id")
    share_owner = None
    if owner is not None and owner.id is not None:
        # Nickname only: email and username stay out of previews.
        share_owner = ShareOwner(id=int(owner.id), nickname=owner.nickname or "")
    return ShareRecord(
        id=int(share.id),
        password=share.password or "",
        created_at=share.created_at,
        expires_at=share.expires_at,
        remain_downloads=share.remain_downloads,
        views=int(share.views or 0),
        downloads=int(share.downloads or 0),
        owner=share_owner,
        root=entry_from_file(root) if root is not None else None,
    )


class SqlShareStore:
    def __init__(self, session: AsyncSession, id_codec: IdCodec) -> None:
        self._session: AsyncSession = session
        self._id_codec: IdCodec = id_codec

    async def _load_associations(self, share: Share) -> ShareRecord:
        owner = await users_repo.get_user(self._session, user_id=share.user_id)
        root = None
        if share.file_id is not None:
            root = await files_repo.get_file(self._session, file_id=share.file_id)
        return record_from_share(share, owner=owner, root=root)

    async def get_by_id(self, share_id: int, *, with_associations: bool = True) -> ShareRecord:
        share = await shares_repo.get_share(self._session, share_id=share_id)
        if share is None:
            raise ShareNotFoundError("share not found")
        if not with_associations:
            return record_from_share(share, owner=None, root=None)
        return await self._load_associations(share)

    async def get_by_opaque_id(self, opaque_id: str) -> ShareRecord:
        try:
            share_id = self._id_codec.decode(opaque_id, ID_KIND_SHARE)
        except InvalidIdError as exc:
            raise ShareNotFoundError("share not found") from exc
        return await self.get_by_id(share_id)

    async def mark_viewed(self, share: ShareRecord) -> None:
        await shares_repo.increment_views(self._session, share_id=share.id)

    async def list_by_user(
        self, user_id: int, *, public_only: bool, limit: int, offset: int
    ) -> list[ShareRecord]:
        rows = await shares_repo.list_shares_for_user(
            self._session,
            user_id=user_id,
            public_only=public_only,
            limit=limit,
            offset=offset,
        )
        return [await self._load_associations(row) for row in rows]


class SqlEntryResolver:
    """Walks a share-scoped address down from the share root, one name per segment."""

    def __init__(
        self,
        store: SqlShareStore,
        session: AsyncSession,
        id_codec: IdCodec,
        check_valid: ShareValidator = check_share_valid,
    ) -> None:
        self._store: SqlShareStore = store
        self._session: AsyncSession = session
        self._id_codec: IdCodec = id_codec
        self._check_valid: ShareValidator = check_valid

    async def resolve(self, uri: ShareUri, *, viewer_id: int | None) -> Entry:
        if uri.filesystem != FILESYSTEM_SHARE:
            raise EntryNotFoundError("not a share address")

        try:
            share = await self._store.get_by_opaque_id(uri.id)
            self._check_valid(share)
        except (ShareNotFoundError, ShareExpiredError) as exc:
            raise EntryNotFoundError("share not available") from exc

        if not is_share_unlocked(share, uri.password, viewer_id):
            raise EntryNotFoundError("share locked")
        if share.root is None:
            raise EntryNotFoundError("share root missing")

        current = share.root
        for segment in [s for s in uri.path.split("/") if s and s != "."]:
            if current.kind != "folder":
                raise EntryNotFoundError("path walks through a file")
            child = await files_repo.get_child_by_name(
                self._session, parent_id=current.id, name=segment
            )
            if child is None:
                raise EntryNotFoundError("path not found")
            current = entry_from_file(child)
        return current


class SqlPermissionGate:
    def __init__(self, session: AsyncSession, anonymous_group_id: int) -> None:
        self._session: AsyncSession = session
        self._anonymous_group_id: int = anonymous_group_id

    async def anonymous_group_permissions(self) -> PermissionSet:
        group = await users_repo.get_group(self._session, group_id=self._anonymous_group_id)
        if group is None:
            raise LookupError(f"anonymous group {self._anonymous_group_id} missing")
        return PermissionSet(bits=int(group.permissions or 0))


def build_share_collaborators(
    session: AsyncSession, id_codec: IdCodec, app_settings: Settings
) -> ShareCollaborators:
    store = SqlShareStore(session, id_codec)
    return ShareCollaborators(
        shares=store,
        entries=SqlEntryResolver(store, session, id_codec),
        permissions=SqlPermissionGate(session, app_settings.anonymous_group_id),
        id_codec=id_codec,
        site=SettingsSiteProvider(app_settings),
        timeout_seconds=app_settings.share_collaborator_timeout_seconds,
    )
