import pytest
from sqlalchemy.exc import OperationalError

from abstract_portal.extensions import db
from abstract_portal.models import Abstract, AbstractStatus
from abstract_portal.services import status_engine
from abstract_portal.services.errors import (
    ConflictStateError,
    InvalidStatusError,
    NotFoundError,
    TransactionError,
    ValidationError,
)


class TestTransition:
    """Single-abstract status changes."""

    def test_approve_sets_status_comments_and_timestamp(self, create_abstract, create_admin_user):
        admin = create_admin_user()
        abstract = create_abstract()
        before = abstract.updated_at

        updated = status_engine.transition(abstract.id, 'approved', 'Strong methods', actor_id=admin.id)

        assert updated.status == AbstractStatus.APPROVED
        assert updated.reviewer_comments == 'Strong methods'
        assert updated.updated_by_id == admin.id
        assert updated.updated_at >= before

    def test_accepts_enum_and_mixed_case(self, create_abstract):
        abstract = create_abstract()
        assert status_engine.transition(abstract.id, AbstractStatus.REJECTED).status == AbstractStatus.REJECTED
        assert status_engine.transition(abstract.id, ' Approved ').status == AbstractStatus.APPROVED

    def test_back_to_pending_clears_comments(self, create_abstract):
        abstract = create_abstract()
        status_engine.transition(abstract.id, 'rejected', 'Out of scope')

        updated = status_engine.transition(abstract.id, 'pending', 'ignored')

        assert updated.status == AbstractStatus.PENDING
        assert updated.reviewer_comments is None

    @pytest.mark.parametrize('target', ['archived', 'final_submitted', '', None, 3])
    def test_invalid_target_status(self, create_abstract, target):
        abstract = create_abstract()
        with pytest.raises(InvalidStatusError) as exc_info:
            status_engine.transition(abstract.id, target)
        assert isinstance(exc_info.value, ValidationError)
        assert db.session.get(Abstract, abstract.id).status == AbstractStatus.PENDING

    def test_missing_abstract(self, app):
        with pytest.raises(NotFoundError):
            status_engine.transition(9999, 'approved')

    def test_owner_mismatch_is_conflict(self, create_abstract, create_user):
        stranger = create_user(email='stranger@example.com')
        abstract = create_abstract()
        with pytest.raises(ConflictStateError):
            status_engine.transition(abstract.id, 'approved', owner_id=stranger.id)

    def test_final_submitted_is_frozen(self, create_abstract):
        abstract = create_abstract(status=AbstractStatus.FINAL_SUBMITTED)
        with pytest.raises(ConflictStateError):
            status_engine.transition(abstract.id, 'rejected')

    def test_commit_failure_rolls_back(self, create_abstract, monkeypatch):
        abstract = create_abstract()
        abstract_id = abstract.id

        def broken_commit():
            raise OperationalError('COMMIT', {}, Exception('server closed the connection'))

        monkeypatch.setattr(db.session, 'commit', broken_commit)
        with pytest.raises(TransactionError) as exc_info:
            status_engine.transition(abstract_id, 'approved', 'ok')
        monkeypatch.undo()

        assert exc_info.value.kind == TransactionError.CONNECTION
        assert db.session.get(Abstract, abstract_id).status == AbstractStatus.PENDING


class TestFinalizeSubmission:

    def test_approved_abstract_becomes_final_submitted(self, create_abstract):
        abstract = create_abstract(status=AbstractStatus.APPROVED)

        updated = status_engine.finalize_submission(
            abstract.id,
            owner_id=abstract.user_id,
            final_file_name='slides.pptx',
            final_file_path='final/slides.pptx',
        )

        assert updated.status == AbstractStatus.FINAL_SUBMITTED
        assert updated.final_file_name == 'slides.pptx'
        assert updated.final_submitted_at is not None

    @pytest.mark.parametrize('status', [AbstractStatus.PENDING, AbstractStatus.REJECTED, AbstractStatus.FINAL_SUBMITTED])
    def test_requires_approved(self, create_abstract, status):
        abstract = create_abstract(status=status)
        with pytest.raises(ConflictStateError):
            status_engine.finalize_submission(abstract.id, owner_id=abstract.user_id, final_file_name='x.pdf')

    def test_requires_owner(self, create_abstract, create_user):
        other = create_user(email='other@example.com')
        abstract = create_abstract(status=AbstractStatus.APPROVED)
        with pytest.raises(ConflictStateError):
            status_engine.finalize_submission(abstract.id, owner_id=other.id, final_file_name='x.pdf')
