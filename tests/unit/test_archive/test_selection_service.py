# tests/unit/test_archive/test_selection_service.py
"""Unit tests for archivable row selection."""

from datetime import timedelta

from tests.conftest import NOW, make_signature, make_validation


def _window(**config_kwargs):
    from app.config import ArchiveConfig
    from app.services.archive.policy_service import evaluate_policy

    return evaluate_policy(ArchiveConfig(**config_kwargs), NOW)


class TestFindUnprocessedSignatures:
    """Tests for find_unprocessed_signatures()."""

    def test_selects_old_unmatched_signature(self, live_db):
        from app.services.archive.selection_service import find_unprocessed_signatures

        signature = make_signature(received_at=NOW - timedelta(days=20))
        live_db.add(signature)
        live_db.commit()

        result = find_unprocessed_signatures(live_db, _window(), limit=10)

        assert [s.id for s in result] == [signature.id]

    def test_skips_signature_inside_lifetime(self, live_db):
        from app.services.archive.selection_service import find_unprocessed_signatures

        live_db.add(make_signature(received_at=NOW - timedelta(days=3)))
        live_db.commit()

        assert find_unprocessed_signatures(live_db, _window(), limit=10) == []

    def test_skips_signature_with_validation(self, live_db):
        """A signature whose validation arrived is still in flight."""
        from app.services.archive.selection_service import find_unprocessed_signatures

        signature = make_signature()
        live_db.add_all([signature, make_validation(validation_secret=signature.validation_secret)])
        live_db.commit()

        assert find_unprocessed_signatures(live_db, _window(), limit=10) == []

    def test_skips_processed_signature(self, live_db):
        from app.services.archive.selection_service import find_unprocessed_signatures

        live_db.add(make_signature(processed=True))
        live_db.commit()

        assert find_unprocessed_signatures(live_db, _window(), limit=10) == []

    def test_limit_takes_oldest_first(self, live_db):
        from app.services.archive.selection_service import find_unprocessed_signatures

        signatures = [make_signature(received_at=NOW - timedelta(days=15 + i)) for i in range(5)]
        live_db.add_all(signatures)
        live_db.commit()

        result = find_unprocessed_signatures(live_db, _window(), limit=2)

        assert [s.id for s in result] == [signatures[4].id, signatures[3].id]


class TestFindProcessedSignatures:
    """Tests for find_processed_signatures()."""

    def test_selects_regardless_of_age(self, live_db):
        from app.services.archive.selection_service import find_processed_signatures

        fresh = make_signature(processed=True, received_at=NOW - timedelta(minutes=5))
        live_db.add_all([fresh, make_signature(processed=False)])
        live_db.commit()

        result = find_processed_signatures(live_db, _window(), limit=10)

        assert [s.id for s in result] == [fresh.id]


class TestFindValidationsForSecrets:
    """Tests for find_validations_for_secrets()."""

    def test_empty_secrets_skip_query(self):
        from unittest.mock import MagicMock

        from app.services.archive.selection_service import find_validations_for_secrets

        mock_db = MagicMock()

        assert find_validations_for_secrets(mock_db, []) == []
        mock_db.query.assert_not_called()

    def test_matches_by_secret(self, live_db):
        from app.services.archive.selection_service import find_validations_for_secrets

        wanted = make_validation()
        live_db.add_all([wanted, make_validation()])
        live_db.commit()

        result = find_validations_for_secrets(live_db, [wanted.validation_secret])

        assert [v.id for v in result] == [wanted.id]


class TestFindOrphanedValidations:
    """Tests for find_orphaned_validations()."""

    def test_selects_closed_unmatched_validation(self, live_db):
        from app.services.archive.selection_service import find_orphaned_validations

        orphan = make_validation(validation_closes_at=NOW - timedelta(hours=1))
        live_db.add(orphan)
        live_db.commit()

        result = find_orphaned_validations(live_db, _window(), limit=10)

        assert [v.id for v in result] == [orphan.id]

    def test_skips_open_validation(self, live_db):
        from app.services.archive.selection_service import find_orphaned_validations

        live_db.add(make_validation(validation_closes_at=NOW + timedelta(days=1)))
        live_db.commit()

        assert find_orphaned_validations(live_db, _window(), limit=10) == []

    def test_skips_validation_with_signature(self, live_db):
        from app.services.archive.selection_service import find_orphaned_validations

        validation = make_validation()
        live_db.add_all([validation, make_signature(validation_secret=validation.validation_secret)])
        live_db.commit()

        assert find_orphaned_validations(live_db, _window(), limit=10) == []


class TestArchivePreview:
    """Tests for get_archive_preview()."""

    def test_counts_and_next_batch(self, live_db):
        from app.config import ArchiveConfig
        from app.services.archive.selection_service import get_archive_preview

        live_db.add_all([make_signature() for _ in range(3)])
        live_db.add(make_signature(processed=True))
        live_db.add(make_validation())
        live_db.commit()

        preview = get_archive_preview(live_db, ArchiveConfig(batch_size=2), NOW)

        assert preview["enabled"] is True
        assert preview["eligible"] == {"not_validated": 3, "processed": 1, "orphaned": 1}
        assert preview["next_batch"] == {"not_validated": 2, "processed": 1, "orphaned": 1}

    def test_disabled_reports_nothing(self, live_db):
        from app.config import ArchiveConfig
        from app.services.archive.selection_service import get_archive_preview

        live_db.add(make_signature())
        live_db.commit()

        preview = get_archive_preview(live_db, ArchiveConfig(enabled=False), NOW)

        assert preview["enabled"] is False
        assert preview["signature_cutoff"] is None
        assert preview["eligible"]["not_validated"] == 0
