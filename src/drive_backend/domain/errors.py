from __future__ import annotations


class ShareError(Exception):
    """Base class for share resolution failures."""


class ShareNotFoundError(ShareError):
    pass


class ShareExpiredError(ShareError):
    pass


class EntryNotFoundError(ShareError):
    pass


class InvalidIdError(ShareError):
    pass


class InvalidShareUriError(ShareError, ValueError):
    pass


class PreviewRenderError(ShareError):
    pass
