"""
Tests for document uploads and the inbox watcher.
"""
import json
import pytest
from pathlib import Path

from compliance.api.client import ApiError
from compliance.documents.inbox_watcher import document_type_for
from compliance.documents import (
    DocumentManager,
    InboxConfig,
    InboxItem,
    InboxWatcher,
    TrialBalanceUploader,
    UploadFile,
    UploadRejected,
    format_file_size,
)

TEN_MB = 10 * 1024 * 1024


class TestFormatFileSize:
    """Test cases for human readable sizes."""

    @pytest.mark.parametrize('size,text', [
        (0, '0 Bytes'),
        (500, '500 Bytes'),
        (1024, '1 KB'),
        (1536, '1.5 KB'),
    ])
    def test_format_file_size(self, size, text):
        assert format_file_size(size) == text


class TestDocumentManager:
    """Test cases for DocumentManager."""

    @pytest.fixture
    def manager(self, mock_api_client, notifications):
        return DocumentManager(mock_api_client, notifications)

    def test_upload_document(self, manager, mock_api_client, notifications):
        mock_api_client.upload_document.return_value = {'id': 42}

        document_id = manager.upload_document(UploadFile('tb.csv', b'account,debit\n'), 'trial_balance')

        assert document_id == 42
        mock_api_client.upload_document.assert_called_once_with('tb.csv', b'account,debit\n', 'trial_balance')
        mock_api_client.list_documents.assert_called_once()
        assert notifications.latest.title == 'Document uploaded'
        assert not manager.is_uploading

    def test_no_file_selected(self, manager, mock_api_client, notifications):
        with pytest.raises(UploadRejected) as exc_info:
            manager.upload_document(None, 'invoice')

        assert exc_info.value.title == 'No files selected'
        assert notifications.latest.is_error
        mock_api_client.upload_document.assert_not_called()

    def test_document_type_required(self, manager):
        with pytest.raises(UploadRejected, match='select the type of document'):
            manager.upload_document(UploadFile('invoice.pdf', b'%PDF'), '')

    def test_unknown_document_type(self, manager):
        with pytest.raises(UploadRejected) as exc_info:
            manager.upload_document(UploadFile('invoice.pdf', b'%PDF'), 'selfie')

        assert exc_info.value.title == 'Unknown document type'

    def test_file_too_large(self, manager):
        with pytest.raises(UploadRejected) as exc_info:
            manager.upload_document(UploadFile('big.pdf', b'x' * (TEN_MB + 1)), 'invoice')

        assert exc_info.value.title == 'File Too Large'

    def test_server_rejection(self, manager, mock_api_client, notifications):
        mock_api_client.upload_document.side_effect = ApiError(415, 'Unsupported file')

        with pytest.raises(ApiError):
            manager.upload_document(UploadFile('a.pdf', b'%PDF'), 'invoice')

        assert notifications.latest.title == 'Upload failed'
        assert notifications.latest.description == 'Unsupported file'
        assert not manager.is_uploading

    def test_upload_documents(self, manager, mock_api_client, notifications):
        mock_api_client.upload_document.side_effect = [{'id': 1}, {'id': 2}]

        ids = manager.upload_documents([UploadFile('a.pdf', b'1'), UploadFile('b.pdf', b'2')], 'invoice')

        assert ids == [1, 2]
        assert notifications.latest.description == 'Successfully uploaded 2 document(s).'

    def test_recent_documents(self, manager, mock_api_client):
        mock_api_client.list_documents.return_value = [
            {'id': index, 'uploadedAt': f"2024-06-{index:02d}T09:00:00Z"} for index in range(1, 8)
        ] + [{'id': 99}]
        manager.refresh()

        assert [d['id'] for d in manager.recent_documents] == [7, 6, 5, 4, 3]

    def test_delete_and_process(self, manager, mock_api_client, notifications):
        mock_api_client.process_document.return_value = {'id': 3, 'status': 'processed'}

        manager.delete_document(3)
        assert notifications.latest.title == 'Document deleted'

        assert manager.process_document(3) == {'id': 3, 'status': 'processed'}
        assert notifications.latest.title == 'Document processed'

    def test_process_failure(self, manager, mock_api_client, notifications):
        mock_api_client.process_document.side_effect = ApiError(500, 'OCR unavailable')

        with pytest.raises(ApiError):
            manager.process_document(3)

        assert notifications.latest.title == 'Error processing document'


class TestTrialBalanceUploader:
    """Test cases for TrialBalanceUploader."""

    @pytest.fixture
    def uploader(self, mock_api_client, notifications):
        return TrialBalanceUploader(mock_api_client, notifications)

    def test_rejects_wrong_extension(self, uploader):
        with pytest.raises(UploadRejected) as exc_info:
            uploader.upload(UploadFile('tb.pdf', b'%PDF'), 17, '2023-04-01', '2024-03-31')

        assert exc_info.value.title == 'Invalid File Type'

    def test_requires_period_dates(self, uploader, notifications):
        with pytest.raises(UploadRejected):
            uploader.upload(UploadFile('tb.xlsx', b'PK'), 17, '2023-04-01', '')

        assert notifications.latest.title == 'Missing Period Dates'

    def test_upload(self, uploader, mock_api_client, notifications):
        mock_api_client.upload_trial_balance.return_value = {'id': 8, 'status': 'processing'}

        result = uploader.upload(UploadFile('TB.XLSX', b'PK'), 17, '2023-04-01', '2024-03-31', 'Opening balances')

        assert result['id'] == 8
        mock_api_client.upload_trial_balance.assert_called_once_with(
            'TB.XLSX', b'PK', 17, '2023-04-01', '2024-03-31', 'Opening balances',
        )
        assert notifications.latest.title == 'Upload Successful'

    def test_upload_failure_default_message(self, uploader, mock_api_client, notifications):
        mock_api_client.upload_trial_balance.side_effect = ApiError(500, '')

        with pytest.raises(ApiError):
            uploader.upload(UploadFile('tb.csv', b'a,b'), 17, '2023-04-01', '2024-03-31')

        assert notifications.latest.description == 'Failed to upload opening trial balance'

    def test_verify(self, uploader, mock_api_client, notifications):
        mock_api_client.verify_trial_balance.return_value = {'id': 8, 'isVerified': True}

        uploader.verify(8, True, 'Checked against ledger')

        mock_api_client.verify_trial_balance.assert_called_once_with(8, True, 'Checked against ledger')
        assert notifications.latest.title == 'Verification Updated'


@pytest.fixture
def inbox_config(temp_output_dir):
    return InboxConfig(
        input_dir=temp_output_dir / 'inbox',
        archive_dir=temp_output_dir / 'archive',
        error_dir=temp_output_dir / 'error',
        process_existing=True,
        batch_size=10,
        polling_interval=0,
        settle_seconds=0,
    )


def _write_json(path: Path, data) -> Path:
    path.write_text(json.dumps(data))
    return path


class TestInboxWatcher:
    """Test cases for InboxWatcher."""

    def test_config_creates_directories(self, inbox_config):
        assert inbox_config.input_dir.is_dir()
        assert inbox_config.archive_dir.is_dir()
        assert inbox_config.error_dir.is_dir()

    def test_consume_draft(self, inbox_config, ct600_data):
        source = _write_json(inbox_config.input_dir / 'acme.json', {
            'filing_type': 'corporation_tax', 'form': ct600_data, 'metadata': {'submitted_by': 'ops'},
        })
        watcher = InboxWatcher(inbox_config)
        watcher.add_file_to_queue(source)

        items = watcher.consume_batch()

        assert len(items) == 1
        assert items[0].kind == 'draft'
        assert items[0].filing_type == 'corporation_tax'
        assert items[0].form['utr'] == '1234567890'
        assert items[0].metadata == {'submitted_by': 'ops'}
        assert watcher.get_queue_size() == 0

    def test_list_of_several_drafts_goes_to_error(self, inbox_config):
        source = _write_json(inbox_config.input_dir / 'batch.json', [
            {'filingType': 'confirmation_statement', 'form': {}},
            {'filingType': 'annual_accounts', 'form': {}},
        ])
        watcher = InboxWatcher(inbox_config)
        watcher.add_file_to_queue(source)

        assert watcher.consume_batch() == []

        assert not source.exists()
        report = next(inbox_config.error_dir.glob('*.error.txt'))
        assert 'Inbox files must hold exactly one draft, found 2' in report.read_text()

    def test_single_draft_list(self, inbox_config):
        source = _write_json(inbox_config.input_dir / 'one.json', [
            {'filingType': 'confirmation_statement', 'form': {}},
        ])
        watcher = InboxWatcher(inbox_config)
        watcher.add_file_to_queue(source)

        items = watcher.consume_batch()

        assert [item.filing_type for item in items] == ['confirmation_statement']
        assert items[0].source == source

    def test_non_object_draft_goes_to_error(self, inbox_config):
        source = _write_json(inbox_config.input_dir / 'text.json', 'annual_accounts')
        watcher = InboxWatcher(inbox_config)
        watcher.add_file_to_queue(source)

        assert watcher.consume_batch() == []
        assert watcher.get_statistics()['error_files'] == 1

    def test_document_file(self, inbox_config):
        source = inbox_config.input_dir / 'trial_balance.csv'
        source.write_bytes(b'account,debit,credit\n')
        watcher = InboxWatcher(inbox_config)
        watcher.add_file_to_queue(source)

        item = watcher.consume_batch()[0]

        assert item.kind == 'document'
        assert item.payload == b'account,debit,credit\n'
        assert item.metadata == {'filename': 'trial_balance.csv', 'document_type': 'trial_balance'}
        assert item.filing_type is None
        assert item.form == {}

    def test_invalid_json_goes_to_error(self, inbox_config):
        source = inbox_config.input_dir / 'broken.json'
        source.write_text('{"filing_type": ')
        watcher = InboxWatcher(inbox_config)
        watcher.add_file_to_queue(source)

        assert watcher.consume_batch() == []
        assert not source.exists()
        reports = list(inbox_config.error_dir.glob('*.error.txt'))
        assert len(reports) == 1
        assert 'JSON decode error' in reports[0].read_text()

    def test_empty_file_is_requeued(self, inbox_config):
        source = inbox_config.input_dir / 'empty.json'
        source.write_text('')
        watcher = InboxWatcher(inbox_config)
        watcher.add_file_to_queue(source)

        assert list(watcher.consume_items()) == []
        assert watcher.get_queue_size() == 1

    def test_acknowledge_archives(self, inbox_config):
        source = _write_json(inbox_config.input_dir / 'done.json', {'filing_type': 'annual_accounts'})
        watcher = InboxWatcher(inbox_config)

        watcher.acknowledge(InboxItem('draft', source))

        assert not source.exists()
        assert watcher.get_statistics()['archived_files'] == 1

    def test_reject_moves_with_report(self, inbox_config):
        source = _write_json(inbox_config.input_dir / 'bad.json', {'filing_type': 'annual_accounts'})
        watcher = InboxWatcher(inbox_config)

        watcher.reject(InboxItem('draft', source), 'Validation failed')

        stats = watcher.get_statistics()
        assert stats['error_files'] == 1
        assert stats['input_files_pending'] == 0
        report = next(inbox_config.error_dir.glob('*.error.txt'))
        assert 'Error: Validation failed' in report.read_text()

    def test_reject_missing_file_writes_report(self, inbox_config):
        watcher = InboxWatcher(inbox_config)

        watcher.reject(InboxItem('draft', inbox_config.input_dir / 'gone.json'), 'Submission failed')

        assert (inbox_config.error_dir / 'gone.error.txt').exists()

    def test_connect_scans_existing_files(self, inbox_config):
        _write_json(inbox_config.input_dir / 'a.json', {'filing_type': 'annual_accounts'})
        (inbox_config.input_dir / 'notes.txt').write_text('ignored')
        watcher = InboxWatcher(inbox_config)

        try:
            assert watcher.connect()
            assert watcher.get_queue_size() == 1
            assert watcher.get_statistics()['is_connected']
        finally:
            watcher.close()

        assert not watcher.is_connected


class TestDocumentTypeFor:
    """Test cases for picking the upload type of an inbox document."""

    @pytest.mark.parametrize('filename,expected', [
        ('bank_statement_march.pdf', 'bank_statement'),
        ('Invoice-1042.pdf', 'invoice'),
        ('ledger.xlsx', 'trial_balance'),
        ('ledger.CSV', 'trial_balance'),
        ('year_end_pack.pdf', 'accounting_export'),
    ])
    def test_document_type(self, filename, expected):
        assert document_type_for(Path(filename)) == expected
