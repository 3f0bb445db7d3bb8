from typing import List, Dict, Any, Optional

import firebase_admin
from firebase_admin import firestore as fs
from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter

from models.notification import Notification
from models.post import Comment, Post
from models.user import UserSummary
from utils.pagination import chunked, merge_recent

POSTS = "posts"
FRIEND_REQUESTS = "friendRequests"
NOTIFICATIONS = "notifications"
USERS = "users"


class FirestoreDB:
    def __init__(self, app: firebase_admin.App):
        self.db = fs.client(app)

    def collection(self, name: str):
        return self.db.collection(name)

    @staticmethod
    def _to_dict(snapshot) -> Dict[str, Any]:
        data = snapshot.to_dict()
        data["id"] = snapshot.id
        return data

    def create_post(self, author_uid: str, text: str, image: Optional[str] = None) -> Dict[str, Any]:
        """Create a new post and return it with its generated ID"""
        new_post_ref = self.collection(POSTS).document()
        new_post_data = Post(author=author_uid, text=text, image=image).model_dump(exclude={"id"})
        new_post_ref.set(new_post_data)
        return {"id": new_post_ref.id, **new_post_data}

    def get_post(self, post_id: str) -> Optional[Dict[str, Any]]:
        """Get a post by ID, soft-deleted posts included"""
        snapshot = self.collection(POSTS).document(post_id).get()
        if not snapshot.exists:
            return None
        return self._to_dict(snapshot)

    def update_post(self, post_id: str, fields: Dict[str, Any]) -> None:
        self.collection(POSTS).document(post_id).update(fields)

    def add_like(self, post_id: str, user_id: str) -> None:
        # ArrayUnion never appends a value that is already present
        self.update_post(post_id, {"likes": firestore.ArrayUnion([user_id])})

    def remove_like(self, post_id: str, user_id: str) -> None:
        self.update_post(post_id, {"likes": firestore.ArrayRemove([user_id])})

    def add_comment(self, post_id: str, comment: Comment) -> None:
        self.update_post(post_id, {"comments": firestore.ArrayUnion([comment.model_dump()])})

    def _posts_query(
            self,
            author: Optional[str] = None,
            is_deleted: Optional[bool] = None,
            liked_by: Optional[str] = None,
    ):
        query = self.collection(POSTS)
        if author is not None:
            query = query.where(filter=FieldFilter("author", "==", author))
        if is_deleted is not None:
            query = query.where(filter=FieldFilter("is_deleted", "==", is_deleted))
        if liked_by is not None:
            query = query.where(filter=FieldFilter("likes", "array_contains", liked_by))
        return query

    def find_posts(
            self,
            author: Optional[str] = None,
            authors: Optional[List[str]] = None,
            is_deleted: Optional[bool] = None,
            liked_by: Optional[str] = None,
            order_by: str = "created_at",
            then_by: Optional[str] = None,
            offset: int = 0,
            limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Query posts sorted by a timestamp field descending

        Args:
            author: Only posts by this user
            authors: Only posts by any of these users
            is_deleted: Filter on the soft-delete flag, None for both
            liked_by: Only posts whose likes contain this user
            order_by: Timestamp field to sort on
            then_by: Timestamp field breaking ties on order_by
            offset: Number of posts to skip
            limit: Maximum number of posts to return

        Returns:
            A list of post dicts with their IDs attached
        """
        if authors is None:
            query = self._posts_query(author, is_deleted, liked_by) \
                .order_by(order_by, direction=firestore.Query.DESCENDING)
            if then_by:
                query = query.order_by(then_by, direction=firestore.Query.DESCENDING)
            if offset:
                query = query.offset(offset)
            if limit is not None:
                query = query.limit(limit)
            return [self._to_dict(doc) for doc in query.stream()]

        # One query per chunk of authors, each cut at offset + limit, merged in memory
        window = offset + limit if limit is not None else None
        results = []
        for chunk in chunked(list(dict.fromkeys(authors))):
            query = self._posts_query(None, is_deleted, liked_by) \
                .where(filter=FieldFilter("author", "in", chunk)) \
                .order_by(order_by, direction=firestore.Query.DESCENDING)
            if then_by:
                query = query.order_by(then_by, direction=firestore.Query.DESCENDING)
            if window is not None:
                query = query.limit(window)
            results.append([self._to_dict(doc) for doc in query.stream()])

        return merge_recent(results, offset, limit, field=order_by, then_by=then_by)

    def count_posts(
            self,
            author: Optional[str] = None,
            is_deleted: Optional[bool] = None,
            liked_by: Optional[str] = None,
    ) -> int:
        """Count posts with a server side aggregation query"""
        result = self._posts_query(author, is_deleted, liked_by).count(alias="total").get()
        return int(result[0][0].value)

    def get_accepted_friendships(self, user_ids: List[str]) -> List[Dict[str, str]]:
        """
        Get every accepted friend request where any of the given users is sender or receiver

        Returns:
            A list of {"from": uid, "to": uid} rows without duplicates
        """
        rows = {}
        for chunk in chunked(list(dict.fromkeys(user_ids))):
            for side in ("from", "to"):
                requests_ref = self.collection(FRIEND_REQUESTS).where(
                    filter=FieldFilter("status", "==", "accepted")
                ).where(
                    filter=FieldFilter(side, "in", chunk)
                ).stream()

                for doc in requests_ref:
                    data = doc.to_dict()
                    rows[doc.id] = {"from": data.get("from"), "to": data.get("to")}

        return list(rows.values())

    def get_users(self, user_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        """Batch fetch public profile fields keyed by user ID"""
        ids = list(dict.fromkeys(uid for uid in user_ids if uid))
        if not ids:
            return {}

        refs = [self.collection(USERS).document(uid) for uid in ids]
        users = {}
        for snapshot in self.db.get_all(refs):
            if not snapshot.exists:
                continue
            data = snapshot.to_dict()
            users[snapshot.id] = UserSummary(
                id=snapshot.id,
                username=data.get("username") or "Unknown",
                profileIcon=data.get("profileIcon"),
            ).model_dump()
        return users

    def create_notification(self, notification: Notification) -> str:
        notification_ref = self.collection(NOTIFICATIONS).document()
        notification_ref.set(notification.model_dump(by_alias=True))
        return notification_ref.id
