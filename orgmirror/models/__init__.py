from orgmirror.models.installation import Installation
from orgmirror.models.repository import MirroredRepository
from orgmirror.models.repository_branches import RepositoryBranches
from orgmirror.models.pull_request import MirroredPullRequest, PullRequestStatus
from orgmirror.models.pull_request_analysis import PullRequestAnalysisRecord
from orgmirror.models.member import OrgMember

__all__ = [
    "Installation",
    "MirroredRepository",
    "RepositoryBranches",
    "MirroredPullRequest",
    "PullRequestStatus",
    "PullRequestAnalysisRecord",
    "OrgMember",
]
