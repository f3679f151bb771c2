"""
Supporting document and opening trial balance uploads.
"""
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from dateutil import parser as date_parser

from config.filing_config import DOCUMENT_CONFIG

from ..api.client import ApiError, FilingApiClient
from ..monitoring.notifications import NotificationCenter

logger = logging.getLogger(__name__)

DOCUMENT_TYPES = tuple(DOCUMENT_CONFIG['document_types'])
TRIAL_BALANCE_EXTENSIONS = tuple(DOCUMENT_CONFIG['trial_balance_extensions'])
MAX_FILE_SIZE = DOCUMENT_CONFIG['max_file_size_bytes']


class UploadRejected(ValueError):
    """A file refused before upload."""

    def __init__(self, title: str, message: str):
        super().__init__(message)
        self.title = title
        self.message = message


@dataclass
class UploadFile:
    """File contents plus the name sent in the multipart body."""
    filename: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> 'UploadFile':
        path = Path(path)
        return cls(path.name, path.read_bytes())


def format_file_size(size: int) -> str:
    """Human readable size, e.g. 1.5 KB."""
    if size == 0:
        return '0 Bytes'
    units = ['Bytes', 'KB', 'MB', 'GB']
    exponent = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
    value = f"{size / 1024 ** exponent:.2f}".rstrip('0').rstrip('.')
    return f"{value} {units[exponent]}"


def _uploaded_at(document: Dict):
    return date_parser.isoparse(document['uploadedAt'])


class DocumentManager:
    """
    The account's document library: listing, upload, delete and processing.
    """

    def __init__(self, api_client: FilingApiClient, notifications: Optional[NotificationCenter] = None):
        self.api_client = api_client
        self.notifications = notifications or NotificationCenter()
        self.documents: List[Dict] = []
        self.is_uploading = False

    def refresh(self) -> List[Dict]:
        documents = self.api_client.list_documents()
        self.documents = documents if isinstance(documents, list) else []
        return self.documents

    @property
    def recent_documents(self) -> List[Dict]:
        """The most recently uploaded documents, newest first."""
        dated = [d for d in self.documents if d.get('uploadedAt')]
        dated.sort(key=_uploaded_at, reverse=True)
        return dated[:DOCUMENT_CONFIG['recent_documents_count']]

    @staticmethod
    def check_upload(upload: Optional[UploadFile], document_type: Optional[str]):
        """
        Reject files that would fail upload.

        Raises:
            UploadRejected: With the toast title and message to show
        """
        if upload is None:
            raise UploadRejected('No files selected', 'Please select at least one file to upload.')
        if not document_type:
            raise UploadRejected('Document type required', 'Please select the type of document you are uploading.')
        if document_type not in DOCUMENT_TYPES:
            raise UploadRejected('Unknown document type', f"Document type must be one of: {', '.join(DOCUMENT_TYPES)}")
        if upload.size > MAX_FILE_SIZE:
            raise UploadRejected('File Too Large', 'Please upload files smaller than 10MB')

    def upload_document(self, upload: Optional[UploadFile], document_type: Optional[str]) -> int:
        """
        Upload one document.

        Returns:
            int: The new document id

        Raises:
            UploadRejected: If the file or type is not acceptable
            ApiError: If the server refused the upload
        """
        try:
            self.check_upload(upload, document_type)
        except UploadRejected as e:
            self.notifications.error(e.title, e.message, component='documents')
            raise

        self.is_uploading = True
        try:
            result = self.api_client.upload_document(upload.filename, upload.content, document_type)
        except ApiError as e:
            self.notifications.error('Upload failed', e.message or 'An unexpected error occurred.', component='documents')
            raise
        finally:
            self.is_uploading = False

        logger.info(f"Uploaded {document_type} document {upload.filename} ({format_file_size(upload.size)})")
        self.notifications.toast('Document uploaded', 'Your document has been uploaded successfully.',
                                 component='documents')
        self.refresh()
        return result['id']

    def upload_documents(self, uploads: List[UploadFile], document_type: Optional[str]) -> List[int]:
        """Upload several files of one type; stops at the first failure."""
        if not uploads:
            self.check_upload(None, document_type)
        ids = [self.upload_document(upload, document_type) for upload in uploads]
        self.notifications.toast('Upload successful', f"Successfully uploaded {len(ids)} document(s).",
                                 component='documents')
        return ids

    def delete_document(self, document_id: int):
        try:
            self.api_client.delete_document(document_id)
        except ApiError as e:
            self.notifications.error('Error deleting document', e.message, component='documents')
            raise
        self.notifications.toast('Document deleted', 'Your document has been deleted successfully.',
                                 component='documents')
        self.refresh()

    def process_document(self, document_id: int) -> Dict:
        try:
            document = self.api_client.process_document(document_id)
        except ApiError as e:
            self.notifications.error('Error processing document', e.message, component='documents')
            raise
        self.notifications.toast('Document processed', 'Your document has been processed successfully.',
                                 component='documents')
        self.refresh()
        return document


class TrialBalanceUploader:
    """
    Opening trial balance upload, listing and verification for a company.
    """

    def __init__(self, api_client: FilingApiClient, notifications: Optional[NotificationCenter] = None):
        self.api_client = api_client
        self.notifications = notifications or NotificationCenter()

    @staticmethod
    def check_file(upload: Optional[UploadFile], period_start: str, period_end: str):
        if upload is None:
            raise UploadRejected('No File Selected', 'Please select a trial balance file to upload')
        if Path(upload.filename).suffix.lower() not in TRIAL_BALANCE_EXTENSIONS:
            raise UploadRejected('Invalid File Type', 'Please upload Excel (.xlsx, .xls) or CSV files only')
        if upload.size > MAX_FILE_SIZE:
            raise UploadRejected('File Too Large', 'Please upload files smaller than 10MB')
        if not period_start or not period_end:
            raise UploadRejected('Missing Period Dates', 'Please specify the accounting period start and end dates')

    def upload(
        self,
        upload: Optional[UploadFile],
        company_id: Union[int, str],
        period_start: str,
        period_end: str,
        notes: str = '',
    ) -> Dict:
        """
        Upload an opening trial balance for processing.

        Raises:
            UploadRejected: If the file or period is not acceptable
            ApiError: If the server refused the upload
        """
        try:
            self.check_file(upload, period_start, period_end)
        except UploadRejected as e:
            self.notifications.error(e.title, e.message, component='trial_balance')
            raise

        try:
            result = self.api_client.upload_trial_balance(
                upload.filename, upload.content, company_id, period_start, period_end, notes,
            )
        except ApiError as e:
            self.notifications.error('Upload Failed', e.message or 'Failed to upload opening trial balance',
                                     component='trial_balance')
            raise

        self.notifications.toast('Upload Successful', 'Opening trial balance uploaded and processing started',
                                 component='trial_balance')
        return result

    def list(self, company_id: Union[int, str]) -> List[Dict]:
        return self.api_client.get_trial_balances(company_id)

    def verify(self, balance_id: int, is_verified: bool = True, notes: Optional[str] = None) -> Dict:
        try:
            result = self.api_client.verify_trial_balance(balance_id, is_verified, notes)
        except ApiError as e:
            self.notifications.error('Verification Failed', e.message or 'Failed to update verification status',
                                     component='trial_balance')
            raise
        self.notifications.toast('Verification Updated', 'Opening trial balance verification status updated',
                                 component='trial_balance')
        return result
