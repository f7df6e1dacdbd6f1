from typing import List, Optional


class CollectionError(Exception):
    """Base class for collection errors"""
    pass


class ValidationError(CollectionError):
    """Rejected input; nothing was changed"""
    pass


class StoreError(CollectionError):
    """The collection store could not complete a call"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class PersistFailure(CollectionError):
    """Saving a new order failed or timed out and was rolled back"""
    pass


class TransferFailure(CollectionError):
    """Destination write failed; the source collection is untouched"""
    pass


class PartialTransferFailure(CollectionError):
    """Items were copied to the destination but not removed from the source"""

    def __init__(self, item_ids: List[str]):
        self.item_ids = list(item_ids)
        super().__init__(
            f"Copied but not removed from original: {', '.join(self.item_ids)}"
        )
