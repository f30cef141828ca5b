from gator.models.user import User
from gator.models.feed import Feed
from gator.models.follow import FeedFollow
from gator.models.post import Post

__all__ = ["User", "Feed", "FeedFollow", "Post"]
