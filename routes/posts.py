import html
import logging
from typing import Optional, Dict, Any

import bleach
from fastapi import APIRouter, HTTPException, UploadFile, File, Form
from fastapi.concurrency import run_in_threadpool

from dependencies import Firestore, CurrentUser, S3
from models.notification import Notification
from models.post import Comment, CommentRequest, PostStats, now_iso
from services.feed import FeedAssembler
from services.posts import populate_posts, populate_post, populate_comment
from utils.pagination import parse_page, pagination_meta

logger = logging.getLogger(__name__)

router = APIRouter()

FEED_MAX_LIMIT = 20
LIST_MAX_LIMIT = 50

# Upper bound on the active posts read in one go by /my-liked-posts and /stats/overview
ACTIVE_POSTS_SCAN_LIMIT = 1000


def clean_text(value: Any) -> str:
    """Strip markup from user text, leaving the remaining characters unescaped"""
    if not isinstance(value, str):
        return ""
    return html.unescape(bleach.clean(value, strip=True)).strip()


def _active_post_or_404(db: Firestore, post_id: str) -> Dict[str, Any]:
    post = db.get_post(post_id)
    if not post or post.get("is_deleted"):
        raise HTTPException(status_code=404, detail="Post not found")
    return post


def _owned_post_or_error(db: Firestore, post_id: str, user_id: str, action: str) -> Dict[str, Any]:
    post = db.get_post(post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    if post["author"] != user_id:
        raise HTTPException(status_code=403, detail=f"You are not allowed to {action} this post")
    return post


def _notify(db: Firestore, post: Dict[str, Any], actor: str, kind: str) -> None:
    """Notify the post owner, never for their own actions"""
    if post["author"] == actor:
        return
    db.create_notification(Notification(to=post["author"], sender=actor, type=kind, post=post["id"]))


def _active_posts(db: Firestore, user_id: str):
    return db.find_posts(author=user_id, is_deleted=False, limit=ACTIVE_POSTS_SCAN_LIMIT)


@router.post("/create", status_code=201)
async def create_post(
        db: Firestore,
        s3_service: S3,
        current_user: CurrentUser,
        text: Optional[str] = Form(None),
        image: Optional[UploadFile] = File(None),
) -> Dict[str, Any]:
    """Create a post with text, an image or both"""
    user_id = current_user.user_id
    text = clean_text(text)
    has_image = image is not None and bool(image.filename)

    # Posts with just an image are allowed
    if not text and not has_image:
        raise HTTPException(status_code=400, detail="Text or image is required")

    try:
        image_url = await s3_service.upload_image(image, user_id) if has_image else None
        post = await run_in_threadpool(db.create_post, user_id, text, image_url)

        return {
            "message": "Post created successfully",
            "post": await run_in_threadpool(populate_post, db, post),
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error creating post")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/like/{post_id}")
def like_post(db: Firestore, post_id: str, current_user: CurrentUser) -> Dict[str, Any]:
    user_id = current_user.user_id
    try:
        post = _active_post_or_404(db, post_id)
        likes = post.get("likes", [])

        if user_id in likes:
            raise HTTPException(status_code=400, detail="You have already liked this post")

        db.add_like(post_id, user_id)
        _notify(db, post, user_id, "like")

        return {
            "message": "Post liked successfully",
            "likesCount": len(likes) + 1,
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error liking post %s", post_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/unlike/{post_id}")
def unlike_post(db: Firestore, post_id: str, current_user: CurrentUser) -> Dict[str, Any]:
    user_id = current_user.user_id
    try:
        post = _active_post_or_404(db, post_id)
        likes = post.get("likes", [])

        if user_id not in likes:
            raise HTTPException(status_code=400, detail="You have not liked this post")

        db.remove_like(post_id, user_id)

        return {
            "message": "Post unliked successfully",
            "likesCount": len([uid for uid in likes if uid != user_id]),
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error unliking post %s", post_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/myposts")
def get_my_posts(
        db: Firestore,
        current_user: CurrentUser,
        page: Optional[str] = None,
        limit: Optional[str] = None,
) -> Dict[str, Any]:
    """Get the current user's active posts, newest first"""
    user_id = current_user.user_id
    page, limit, skip = parse_page(page, limit, default_limit=5, max_limit=LIST_MAX_LIMIT)
    try:
        posts = db.find_posts(author=user_id, is_deleted=False, offset=skip, limit=limit)
        total = db.count_posts(author=user_id, is_deleted=False)

        return {
            "message": "Posts fetched successfully",
            "posts": populate_posts(db, posts),
            "pagination": pagination_meta(page, limit, total),
        }
    except Exception as e:
        logger.exception("Error fetching posts of %s", user_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/delete/{post_id}")
def delete_post(db: Firestore, post_id: str, current_user: CurrentUser) -> Dict[str, Any]:
    """Soft delete a post owned by the current user"""
    user_id = current_user.user_id
    try:
        post = _owned_post_or_error(db, post_id, user_id, "delete")

        if post.get("is_deleted"):
            raise HTTPException(status_code=400, detail="Post is already deleted")

        db.update_post(post_id, {"is_deleted": True, "deleted_at": now_iso()})
        logger.info("Post %s soft deleted by %s", post_id, user_id)

        return {"message": "Post deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error deleting post %s", post_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/restore/{post_id}")
def restore_post(db: Firestore, post_id: str, current_user: CurrentUser) -> Dict[str, Any]:
    """Restore a soft deleted post owned by the current user"""
    user_id = current_user.user_id
    try:
        post = _owned_post_or_error(db, post_id, user_id, "restore")

        if not post.get("is_deleted"):
            raise HTTPException(status_code=400, detail="Post is not deleted")

        fields = {"is_deleted": False, "deleted_at": None}
        db.update_post(post_id, fields)
        logger.info("Post %s restored by %s", post_id, user_id)

        return {"message": "Post restored successfully", "post": {**post, **fields}}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error restoring post %s", post_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/deletedposts")
def get_deleted_posts(
        db: Firestore,
        current_user: CurrentUser,
        page: Optional[str] = None,
        limit: Optional[str] = None,
) -> Dict[str, Any]:
    """Get the current user's soft deleted posts, most recently deleted first"""
    user_id = current_user.user_id
    page, limit, skip = parse_page(page, limit, default_limit=10, max_limit=LIST_MAX_LIMIT)
    try:
        posts = db.find_posts(
            author=user_id,
            is_deleted=True,
            order_by="deleted_at",
            then_by="created_at",
            offset=skip,
            limit=limit,
        )
        total = db.count_posts(author=user_id, is_deleted=True)

        return {
            "message": "Deleted posts fetched successfully",
            "posts": populate_posts(db, posts, likes_limit=0),
            "pagination": pagination_meta(page, limit, total),
        }
    except Exception as e:
        logger.exception("Error fetching deleted posts of %s", user_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/comment/{post_id}", status_code=201)
def add_comment(
        db: Firestore,
        post_id: str,
        comment_request: CommentRequest,
        current_user: CurrentUser,
) -> Dict[str, Any]:
    """Append a comment to an active post"""
    user_id = current_user.user_id
    text = clean_text(comment_request.text)
    if not text:
        raise HTTPException(status_code=400, detail="Comment text is required")

    try:
        post = _active_post_or_404(db, post_id)

        comment = Comment(user=user_id, text=text)
        db.add_comment(post_id, comment)
        _notify(db, post, user_id, "comment")

        return {
            "message": "Comment added successfully",
            "comment": populate_comment(db, comment.model_dump()),
            "commentCount": len(post.get("comments", [])) + 1,
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error commenting on post %s", post_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/feed")
def get_feed(
        db: Firestore,
        current_user: CurrentUser,
        page: Optional[str] = None,
        limit: Optional[str] = None,
) -> Dict[str, Any]:
    """Get posts from the user, their friends and their friends' friends"""
    user_id = current_user.user_id
    page, limit, skip = parse_page(page, limit, default_limit=5, max_limit=FEED_MAX_LIMIT)
    try:
        posts = FeedAssembler(db).assemble(user_id, skip, limit)

        return {
            "message": "Feed posts fetched successfully",
            "page": page,
            "limit": limit,
            "count": len(posts),
            "posts": populate_posts(db, posts),
        }
    except Exception as e:
        logger.exception("Feed error for %s", user_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/liked-by-me")
def get_posts_liked_by_me(
        db: Firestore,
        current_user: CurrentUser,
        page: Optional[str] = None,
        limit: Optional[str] = None,
) -> Dict[str, Any]:
    user_id = current_user.user_id
    page, limit, skip = parse_page(page, limit, default_limit=10, max_limit=LIST_MAX_LIMIT)
    try:
        posts = db.find_posts(liked_by=user_id, is_deleted=False, offset=skip, limit=limit)
        total = db.count_posts(liked_by=user_id, is_deleted=False)

        return {
            "message": "Posts liked by you fetched successfully",
            "posts": populate_posts(db, posts),
            "pagination": pagination_meta(page, limit, total),
        }
    except Exception as e:
        logger.exception("Error fetching posts liked by %s", user_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/my-liked-posts")
def get_my_posts_liked_by_others(
        db: Firestore,
        current_user: CurrentUser,
        page: Optional[str] = None,
        limit: Optional[str] = None,
) -> Dict[str, Any]:
    """Get the current user's active posts that have at least one like"""
    user_id = current_user.user_id
    page, limit, skip = parse_page(page, limit, default_limit=10, max_limit=LIST_MAX_LIMIT)
    try:
        # Firestore cannot filter on a non-empty array, so the newest
        # ACTIVE_POSTS_SCAN_LIMIT active posts are filtered in memory
        posts = [post for post in _active_posts(db, user_id) if post.get("likes")]

        return {
            "message": "Your posts liked by others fetched successfully",
            "posts": populate_posts(db, posts[skip:skip + limit], likes_limit=10),
            "pagination": pagination_meta(page, limit, len(posts)),
        }
    except Exception as e:
        logger.exception("Error fetching liked posts of %s", user_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/stats/overview")
def get_post_stats(db: Firestore, current_user: CurrentUser) -> Dict[str, Any]:
    user_id = current_user.user_id
    try:
        total = db.count_posts(author=user_id)
        deleted = db.count_posts(author=user_id, is_deleted=True)
        active = db.count_posts(author=user_id, is_deleted=False)
        # like totals only cover the newest ACTIVE_POSTS_SCAN_LIMIT active posts
        likes = sum(len(post.get("likes", [])) for post in _active_posts(db, user_id))

        return {
            "message": "Post statistics fetched successfully",
            "stats": PostStats.from_counts(total, deleted, active, likes).model_dump(),
        }
    except Exception as e:
        logger.exception("Error fetching post statistics for %s", user_id)
        raise HTTPException(status_code=500, detail=str(e))


# Keep this last, it would otherwise shadow the fixed GET paths above
@router.get("/{post_id}")
def get_post_by_id(db: Firestore, post_id: str, current_user: CurrentUser) -> Dict[str, Any]:
    user_id = current_user.user_id
    try:
        post = _active_post_or_404(db, post_id)
        has_user_liked = user_id in post.get("likes", [])

        populated = populate_post(db, post, likes_limit=None, with_comments=True)
        return {
            "message": "Post fetched successfully",
            "post": {
                **populated,
                "hasUserLiked": has_user_liked,
                "commentsCount": len(post.get("comments", [])),
            },
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error fetching post %s", post_id)
        raise HTTPException(status_code=500, detail=str(e))
