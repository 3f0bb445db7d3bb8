import logging
from typing import Any, Dict, List, Set, Tuple

from services.firestore import FirestoreDB

logger = logging.getLogger(__name__)


class FeedAssembler:
    """
    Builds a user's feed from the two-hop friend neighborhood.

    Direct friends come from accepted friend requests on either side, second-degree
    friends are the accepted connections of those friends. The feed is every
    non-deleted post authored by the user, a direct friend or a second-degree friend.
    """

    def __init__(self, db: FirestoreDB):
        self.db = db

    def direct_friends(self, user_id: str) -> List[str]:
        friends = []
        for row in self.db.get_accepted_friendships([user_id]):
            other = row["to"] if row["from"] == user_id else row["from"]
            if other != user_id and other not in friends:
                friends.append(other)
        return friends

    def second_degree_friends(self, user_id: str, direct: List[str]) -> Set[str]:
        if not direct:
            return set()

        excluded = set(direct)
        excluded.add(user_id)

        mutual = set()
        for row in self.db.get_accepted_friendships(direct):
            for uid in (row["from"], row["to"]):
                if uid not in excluded:
                    mutual.add(uid)
        return mutual

    def neighborhood(self, user_id: str) -> Tuple[List[str], Set[str]]:
        direct = self.direct_friends(user_id)
        return direct, self.second_degree_friends(user_id, direct)

    def feed_user_ids(self, user_id: str) -> List[str]:
        """The requester first, then direct friends, then second-degree friends"""
        direct, mutual = self.neighborhood(user_id)
        return [user_id, *direct, *sorted(mutual)]

    def assemble(self, user_id: str, skip: int, limit: int) -> List[Dict[str, Any]]:
        """
        Get one page of the feed, newest first

        Args:
            user_id: The requesting user
            skip: Number of feed posts to skip
            limit: Maximum number of posts to return

        Returns:
            A list of raw post dicts
        """
        feed_ids = self.feed_user_ids(user_id)
        logger.debug("Feed for %s spans %d users", user_id, len(feed_ids))

        return self.db.find_posts(
            authors=feed_ids,
            is_deleted=False,
            offset=skip,
            limit=limit,
        )
