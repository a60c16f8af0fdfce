"""SQLAlchemy models for content, votes, moderation and aggregates."""

from .aggregates import (
    CommentAggregates,
    CommunityAggregates,
    PersonAggregates,
    PostAggregates,
    SiteAggregates,
)
from .comment import Comment
from .community import Community
from .instance import Instance, Site
from .moderation import ModRemoveComment, ModRemovePost
from .person import Person
from .post import Post
from .report import CommentReport, PostReport
from .vote import CommentLike, PostLike

__all__ = [
    "CommentAggregates", "CommunityAggregates", "PersonAggregates",
    "PostAggregates", "SiteAggregates",
    "Comment",
    "Community",
    "Instance", "Site",
    "ModRemoveComment", "ModRemovePost",
    "Person",
    "Post",
    "CommentReport", "PostReport",
    "CommentLike", "PostLike",
]
