"""Errors raised by the site store.

Each error carries the HTTP status it maps to, so the web layer can turn
any of them into a JSON error response without a lookup table.
"""


class SiteStoreError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Input validation

class MissingSubdomain(SiteStoreError):
    status_code = 400


class InvalidSubdomainFormat(SiteStoreError):
    status_code = 400


class NoFilesProvided(SiteStoreError):
    status_code = 400


class DisallowedFileType(SiteStoreError):
    status_code = 400


class MissingIndexFile(SiteStoreError):
    status_code = 400


class OversizeRequest(SiteStoreError):
    status_code = 413


class PathOutsideSite(SiteStoreError):
    status_code = 403


# Lookups

class SiteNotFound(SiteStoreError):
    status_code = 404


class FileNotFound(SiteStoreError):
    status_code = 404


class StorageFailure(SiteStoreError):
    status_code = 500
