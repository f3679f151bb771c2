"""
Document uploads and the folder inbox.
"""
from .uploader import (
    DOCUMENT_TYPES,
    DocumentManager,
    TrialBalanceUploader,
    UploadFile,
    UploadRejected,
    format_file_size,
)
from .inbox_watcher import InboxConfig, InboxItem, InboxWatcher

__all__ = [
    'DOCUMENT_TYPES',
    'DocumentManager',
    'TrialBalanceUploader',
    'UploadFile',
    'UploadRejected',
    'format_file_size',
    'InboxConfig',
    'InboxItem',
    'InboxWatcher',
]
