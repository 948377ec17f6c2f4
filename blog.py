"""
Blog posts with embedded comments, replies and comment likes.

A comment author is either a signed-in user or an anonymous visitor who
left a name and email; the variant is settled once, when the comment is
written. Changes to the embedded comment list are saved with a revision
check so concurrent writers cannot overwrite each other.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Union

from bson import ObjectId
from fastapi import APIRouter, Depends
from pydantic import EmailStr, Field, TypeAdapter, ValidationError
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, parse_object_id, to_storage, utc_now
from errors import Conflict, InvalidInput, NotFound, Unauthorized
from responses import api_response
from schemas import BlogAuthor, BlogPost, CamelModel, Comment, CommentAuthor, PostStatus, Reply
from security import Identity, get_optional_user, require_admin, require_guest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/blog", tags=["blog"])

_email_adapter = TypeAdapter(EmailStr)


# ----- Models -----

class BlogPostIn(CamelModel):
    title: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    excerpt: str
    content: str
    hero_image: str
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    author: BlogAuthor
    published_at: Optional[datetime] = None
    status: PostStatus = "draft"


class BlogPostUpdate(CamelModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    content: Optional[str] = None
    hero_image: Optional[str] = None
    categories: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    author: Optional[BlogAuthor] = None
    published_at: Optional[datetime] = None
    status: Optional[PostStatus] = None


class CommentIn(CamelModel):
    content: str = Field(..., min_length=1)
    name: Optional[str] = None
    email: Optional[str] = None


# ----- Comment authors -----

@dataclass(frozen=True)
class AuthenticatedAuthor:
    user_id: str
    name: str
    email: str


@dataclass(frozen=True)
class AnonymousAuthor:
    name: str
    email: str


Author = Union[AuthenticatedAuthor, AnonymousAuthor]


def resolve_author(identity: Optional[Identity], name: Optional[str], email: Optional[str]) -> Author:
    """Signed-in callers are credited from their account and any supplied
    name/email is ignored; anonymous callers must give both."""
    if identity is not None:
        return AuthenticatedAuthor(user_id=identity.id, name=identity.name or identity.email, email=identity.email)
    if not name or not name.strip() or not email or not email.strip():
        raise InvalidInput("Name and email are required to comment without signing in")
    try:
        email = _email_adapter.validate_python(email.strip())
    except ValidationError:
        raise InvalidInput("Please provide a valid email")
    return AnonymousAuthor(name=name.strip(), email=email.lower())


def author_document(author: Author) -> CommentAuthor:
    if isinstance(author, AuthenticatedAuthor):
        return CommentAuthor(kind="user", user_id=author.user_id, name=author.name, email=author.email)
    return CommentAuthor(kind="anonymous", name=author.name, email=author.email)


def _may_remove(identity: Identity, entry: dict) -> bool:
    author = entry.get("author", {})
    return identity.is_staff or (author.get("kind") == "user" and author.get("userId") == identity.id)


# ----- Posts -----

def list_posts(db: Database, identity: Optional[Identity], status_filter: Optional[str] = None) -> List[dict]:
    if identity is not None and identity.is_staff:
        query = {"status": status_filter} if status_filter else {}
    else:
        query = {"status": "published"}
    return list(db["blogpost"].find(query, {"comments": 0}).sort("publishedAt", -1))


def get_post(db: Database, slug: str, identity: Optional[Identity] = None) -> dict:
    post = db["blogpost"].find_one({"slug": slug})
    if not post or (post.get("status") != "published" and not (identity and identity.is_staff)):
        raise NotFound("Blog post not found")
    return post


def create_post(db: Database, data: BlogPostIn) -> dict:
    post = BlogPost(**data.model_dump(exclude={"published_at"}), published_at=data.published_at or utc_now())
    if db["blogpost"].find_one({"slug": post.slug}):
        raise InvalidInput(f"A post with slug '{post.slug}' already exists")
    try:
        post_id = create_document(db, "blogpost", post)
    except DuplicateKeyError:
        raise InvalidInput(f"A post with slug '{post.slug}' already exists")
    logger.info("Created blog post %s", post.slug)
    return db["blogpost"].find_one({"_id": parse_object_id(post_id)})


def update_post(db: Database, post_id: str, data: BlogPostUpdate) -> dict:
    changes = to_storage(data.model_dump(by_alias=True, exclude_unset=True))
    changes["updatedAt"] = utc_now()
    oid = parse_object_id(post_id)
    try:
        post = db["blogpost"].find_one_and_update(
            {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
        ) if oid else None
    except DuplicateKeyError:
        raise InvalidInput("A post with this slug already exists")
    if not post:
        raise NotFound("Blog post not found")
    return post


def delete_post(db: Database, post_id: str) -> None:
    oid = parse_object_id(post_id)
    result = db["blogpost"].delete_one({"_id": oid}) if oid else None
    if result is None or result.deleted_count == 0:
        raise NotFound("Blog post not found")


# ----- Comments -----

def _mutate_comments(db: Database, slug: str, identity: Optional[Identity], mutate: Callable[[list], object]):
    post = get_post(db, slug, identity)
    comments = post.get("comments", [])
    result = mutate(comments)
    if "commentsRevision" in post:
        revision = post["commentsRevision"]
        guard = {"_id": post["_id"], "commentsRevision": revision}
    else:
        revision = 0
        guard = {"_id": post["_id"], "commentsRevision": {"$exists": False}}
    saved = db["blogpost"].update_one(
        guard,
        {"$set": {"comments": comments, "commentsRevision": revision + 1, "updatedAt": utc_now()}},
    )
    if saved.matched_count == 0:
        raise Conflict("The post was changed by another request, please retry")
    return result


def _find_comment(comments: list, comment_id: str) -> dict:
    for comment in comments:
        if comment["id"] == comment_id:
            return comment
    raise NotFound("Comment not found")


def add_comment(db: Database, slug: str, identity: Optional[Identity], data: CommentIn) -> dict:
    author = resolve_author(identity, data.name, data.email)
    comment = to_storage(
        Comment(id=str(ObjectId()), author=author_document(author), content=data.content.strip(), created_at=utc_now())
    )

    def append(comments):
        comments.append(comment)
        return comment

    return _mutate_comments(db, slug, identity, append)


def delete_comment(db: Database, slug: str, comment_id: str, identity: Identity) -> None:
    def remove(comments):
        comment = _find_comment(comments, comment_id)
        if not _may_remove(identity, comment):
            raise Unauthorized("You can only delete your own comments")
        comments.remove(comment)

    _mutate_comments(db, slug, identity, remove)


def add_reply(db: Database, slug: str, comment_id: str, identity: Optional[Identity], data: CommentIn) -> dict:
    author = resolve_author(identity, data.name, data.email)
    reply = to_storage(
        Reply(id=str(ObjectId()), author=author_document(author), content=data.content.strip(), created_at=utc_now())
    )

    def append(comments):
        _find_comment(comments, comment_id).setdefault("replies", []).append(reply)
        return reply

    return _mutate_comments(db, slug, identity, append)


def delete_reply(db: Database, slug: str, comment_id: str, reply_id: str, identity: Identity) -> None:
    def remove(comments):
        replies = _find_comment(comments, comment_id).get("replies", [])
        for reply in replies:
            if reply["id"] == reply_id:
                if not _may_remove(identity, reply):
                    raise Unauthorized("You can only delete your own replies")
                replies.remove(reply)
                return
        raise NotFound("Reply not found")

    _mutate_comments(db, slug, identity, remove)


def toggle_like(db: Database, slug: str, comment_id: str, identity: Identity) -> dict:
    """Like the comment, or remove the caller's like if already present."""
    def toggle(comments):
        likes = _find_comment(comments, comment_id).setdefault("likes", [])
        if identity.id in likes:
            likes.remove(identity.id)
            liked = False
        else:
            likes.append(identity.id)
            liked = True
        return {"liked": liked, "likes": len(likes)}

    return _mutate_comments(db, slug, identity, toggle)


# ----- Endpoints -----

@router.get("")
def read_posts(
    status: Optional[str] = None,
    identity: Optional[Identity] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    posts = list_posts(db, identity, status)
    return api_response(posts, count=len(posts))


@router.get("/{slug}")
def read_post(slug: str, identity: Optional[Identity] = Depends(get_optional_user), db: Database = Depends(get_db)):
    return api_response(get_post(db, slug, identity))


@router.post("", status_code=201)
def post_blog_post(data: BlogPostIn, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    return api_response(create_post(db, data), "Blog post created successfully")


@router.put("/{post_id}")
def put_blog_post(
    post_id: str, data: BlogPostUpdate, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)
):
    return api_response(update_post(db, post_id, data), "Blog post updated successfully")


@router.delete("/{post_id}")
def delete_blog_post(post_id: str, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    delete_post(db, post_id)
    return api_response(message="Blog post deleted successfully")


@router.post("/{slug}/comments", status_code=201)
def post_comment(
    slug: str,
    data: CommentIn,
    identity: Optional[Identity] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    return api_response(add_comment(db, slug, identity, data), "Comment added")


@router.delete("/{slug}/comments/{comment_id}")
def remove_comment(
    slug: str, comment_id: str, identity: Identity = Depends(require_guest), db: Database = Depends(get_db)
):
    delete_comment(db, slug, comment_id, identity)
    return api_response(message="Comment deleted")


@router.post("/{slug}/comments/{comment_id}/replies", status_code=201)
def post_reply(
    slug: str,
    comment_id: str,
    data: CommentIn,
    identity: Optional[Identity] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    return api_response(add_reply(db, slug, comment_id, identity, data), "Reply added")


@router.delete("/{slug}/comments/{comment_id}/replies/{reply_id}")
def remove_reply(
    slug: str,
    comment_id: str,
    reply_id: str,
    identity: Identity = Depends(require_guest),
    db: Database = Depends(get_db),
):
    delete_reply(db, slug, comment_id, reply_id, identity)
    return api_response(message="Reply deleted")


@router.post("/{slug}/comments/{comment_id}/like")
def post_like(
    slug: str, comment_id: str, identity: Identity = Depends(require_guest), db: Database = Depends(get_db)
):
    return api_response(toggle_like(db, slug, comment_id, identity))
