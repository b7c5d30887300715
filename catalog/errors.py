class CatalogError(Exception):
    pass


class ValidationError(CatalogError, ValueError):
    """Bad or unparseable field value. Per row / per field, never fatal for a batch."""


class NotFoundError(CatalogError):
    pass


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: int):
        super().__init__(f"Class not found: {product_id}")
        self.product_id = product_id


class InvalidSourceError(CatalogError):
    """Import source cannot be used at all (bad sheet URL, unreadable file)."""


class StorageError(CatalogError):
    pass


class DuplicateSpecialIdError(StorageError):
    pass


class SyncDegradedError(CatalogError):
    """Server cart mirror write failed. Logged and dropped by the synchronizer."""
