from typing import Any, Dict, List, Optional

from services.firestore import FirestoreDB


def _summary(users: Dict[str, Dict[str, Any]], user_id: str) -> Dict[str, Any]:
    return users.get(user_id) or {"id": user_id, "username": "Unknown", "profileIcon": None}


def populate_posts(
        db: FirestoreDB,
        posts: List[Dict[str, Any]],
        likes_limit: Optional[int] = 5,
        with_comments: bool = False,
) -> List[Dict[str, Any]]:
    """
    Replace user IDs on posts with public profile summaries

    Author, likers (first likes_limit, all when None) and optionally comment authors
    are resolved with a single batched user lookup. likesCount keeps the full count.
    """
    user_ids = []
    for post in posts:
        user_ids.append(post["author"])
        user_ids.extend(post.get("likes", [])[:likes_limit])
        if with_comments:
            user_ids.extend(c["user"] for c in post.get("comments", []))

    users = db.get_users(user_ids)

    populated = []
    for post in posts:
        likes = post.get("likes", [])
        item = {
            **post,
            "author": _summary(users, post["author"]),
            "likes": [_summary(users, uid) for uid in likes[:likes_limit]],
            "likesCount": len(likes),
        }
        if with_comments:
            item["comments"] = [
                {**comment, "user": _summary(users, comment["user"])}
                for comment in post.get("comments", [])
            ]
        populated.append(item)

    return populated


def populate_post(db: FirestoreDB, post: Dict[str, Any], **kwargs) -> Dict[str, Any]:
    return populate_posts(db, [post], **kwargs)[0]


def populate_comment(db: FirestoreDB, comment: Dict[str, Any]) -> Dict[str, Any]:
    users = db.get_users([comment["user"]])
    return {**comment, "user": _summary(users, comment["user"])}
