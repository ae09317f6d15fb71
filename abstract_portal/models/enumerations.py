from enum import Enum
# enums.py


class Role(str, Enum):
    ADMIN = 'admin'
    DELEGATE = 'delegate'


class AbstractStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    FINAL_SUBMITTED = 'final_submitted'


# Targets an admin review may move an abstract to. FINAL_SUBMITTED is only
# reachable through the final upload of an approved abstract.
REVIEW_STATUSES = (
    AbstractStatus.PENDING,
    AbstractStatus.APPROVED,
    AbstractStatus.REJECTED,
)


class AbstractCategory(str, Enum):
    FREE_PAPER = 'Free Paper'
    POSTER = 'Poster'
    E_POSTER = 'E-Poster'
    AWARD_PAPER = 'Award Paper'
