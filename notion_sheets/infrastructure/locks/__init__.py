from notion_sheets.infrastructure.locks.document_lock import DocumentLockManager, DocumentLockTimeoutError


__all__ = ["DocumentLockManager", "DocumentLockTimeoutError"]
