import pytest

from abstract_portal.models import AbstractCategory, AbstractStatus
from abstract_portal.services.bulk_update import BulkUpdateOrchestrator
from abstract_portal.services.statistics import classify_category, compute_stats, percent
from abstract_portal.utils.model_utils import abstract_utils


def test_counts_follow_a_bulk_approval(create_abstract):
    abstracts = [create_abstract(title=f'Abstract {i}') for i in range(5)]
    assert compute_stats(abstract_utils.list_abstracts())['pending'] == 5

    BulkUpdateOrchestrator().run([a.id for a in abstracts[:3]], 'approved')

    stats = compute_stats(abstract_utils.list_abstracts())
    assert stats['total'] == 5
    assert stats['pending'] == 2
    assert stats['approved'] == 3
    assert stats['rejected'] == 0
    assert stats['byCategory']['Free Paper']['approved'] == 3


def test_every_category_is_present_with_the_same_keys():
    stats = compute_stats([])

    assert stats['total'] == 0
    assert set(stats['byCategory']) == {c.value for c in AbstractCategory}
    keys = {frozenset(bucket) for bucket in stats['byCategory'].values()}
    assert keys == {frozenset({'total', 'pending', 'approved', 'rejected', 'final_submitted'})}


def test_accepts_plain_mappings():
    rows = [
        {'status': 'approved', 'category': 'Poster'},
        {'status': AbstractStatus.REJECTED, 'category': AbstractCategory.E_POSTER},
        {'status': 'final_submitted', 'category': 'award paper'},
    ]

    stats = compute_stats(rows)

    assert stats['approved'] == 1
    assert stats['rejected'] == 1
    assert stats['final_submitted'] == 1
    assert stats['byCategory']['Poster']['approved'] == 1
    assert stats['byCategory']['E-Poster']['rejected'] == 1
    assert stats['byCategory']['Award Paper']['total'] == 1


def test_unknown_status_counts_toward_total_only():
    stats = compute_stats([{'status': 'archived', 'category': 'Poster'}])
    assert stats['total'] == 1
    assert stats['pending'] == stats['approved'] == stats['rejected'] == 0


@pytest.mark.parametrize('value, expected', [
    (AbstractCategory.POSTER, AbstractCategory.POSTER),
    ('E_POSTER', AbstractCategory.E_POSTER),
    ('free paper', AbstractCategory.FREE_PAPER),
    ('Award Paper - poster session', AbstractCategory.AWARD_PAPER),
    ('e-poster track', AbstractCategory.E_POSTER),
    ('Poster walk', AbstractCategory.POSTER),
    ('misc', AbstractCategory.FREE_PAPER),
    (None, AbstractCategory.FREE_PAPER),
])
def test_classify_category(value, expected):
    assert classify_category(value) is expected


@pytest.mark.parametrize('part, total, expected', [
    (2, 3, 66.7),
    (1, 3, 33.3),
    (3, 3, 100.0),
    (0, 0, 0.0),
    (0, 5, 0.0),
])
def test_percent(part, total, expected):
    assert percent(part, total) == expected
