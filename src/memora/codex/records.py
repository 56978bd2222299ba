"""
Memo payload records.

Each record is the Borsh-serialized application payload carried inside a
``BurnMemo`` envelope (chat messages travel bare). The first three fields are always
``version: u8``, ``category: String`` and ``operation: String``; the
programs check these tags, so they are fixed per record type.

String limits are measured in UTF-8 bytes, as the programs measure them.
"""

from __future__ import annotations

import abc
import dataclasses
import io
from dataclasses import dataclass
from typing import Any, ClassVar, Optional

from borsh_construct import CStruct, Option, String, U8, U64, Vec
from construct import Construct, ConstructError, If, this

from ..errors import InvalidParameterError

RECORD_VERSION = 1

U64_MAX = 2 ** 64 - 1

# Profile
MAX_USERNAME_LENGTH = 32
MAX_PROFILE_IMAGE_LENGTH = 256
MAX_ABOUT_ME_LENGTH = 128

# Blog
MAX_BLOG_NAME_LENGTH = 64
MAX_BLOG_DESCRIPTION_LENGTH = 256
MAX_BLOG_IMAGE_LENGTH = 256
MAX_BLOG_MESSAGE_LENGTH = 696

# Forum
MAX_POST_TITLE_LENGTH = 128
MAX_POST_CONTENT_LENGTH = 512
MAX_POST_IMAGE_LENGTH = 256
MAX_REPLY_MESSAGE_LENGTH = 512

# Project
MAX_PROJECT_NAME_LENGTH = 64
MAX_PROJECT_DESCRIPTION_LENGTH = 256
MAX_PROJECT_IMAGE_LENGTH = 256
MAX_PROJECT_WEBSITE_LENGTH = 128
MAX_PROJECT_TAGS = 4
MAX_PROJECT_TAG_LENGTH = 32
MAX_PROJECT_MESSAGE_LENGTH = 696

# Chat
MAX_CHAT_MESSAGE_LENGTH = 512

_HEADER = ("version" / U8, "category" / String, "operation" / String)

HEADER_LAYOUT = CStruct(*_HEADER)


def check_text(field: str, value: str, max_len: int, min_len: int = 0) -> None:
    """Raise ``InvalidParameterError`` unless ``min_len <= utf8_len(value) <= max_len``."""
    if not isinstance(value, str):
        raise InvalidParameterError(field, f"expected text, got {type(value).__name__}")
    size = len(value.encode("utf-8"))
    if size < min_len:
        if min_len == 1:
            raise InvalidParameterError(field, "must not be empty", limit=min_len)
        raise InvalidParameterError(
            field, f"must be at least {min_len} bytes (got {size})", limit=min_len
        )
    if size > max_len:
        raise InvalidParameterError(
            field, f"must be at most {max_len} bytes (got {size})", limit=max_len
        )


def check_u64(field: str, value: int) -> None:
    """Raise ``InvalidParameterError`` unless ``value`` is an integer in ``0..2^64-1``."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidParameterError(field, f"expected an integer, got {type(value).__name__}")
    if not 0 <= value <= U64_MAX:
        raise InvalidParameterError(field, f"out of range 0..{U64_MAX}: {value}", limit=U64_MAX)


def check_optional_text(field: str, value: Optional[str], max_len: int, min_len: int = 0) -> None:
    if value is not None:
        check_text(field, value, max_len, min_len)


def check_tags(field: str, tags: tuple[str, ...]) -> None:
    if len(tags) > MAX_PROJECT_TAGS:
        raise InvalidParameterError(
            field, f"at most {MAX_PROJECT_TAGS} tags allowed (got {len(tags)})",
            limit=MAX_PROJECT_TAGS,
        )
    for i, tag in enumerate(tags):
        check_text(f"{field}[{i}]", tag, MAX_PROJECT_TAG_LENGTH, min_len=1)


class MemoRecord(abc.ABC):
    """Base class for payload records."""

    CATEGORY: ClassVar[str]
    OPERATION: ClassVar[str]
    LAYOUT: ClassVar[Construct]

    @abc.abstractmethod
    def validate(self) -> None:
        """Raise ``InvalidParameterError`` for the first field out of bounds."""

    def matches(self, **expected: Any) -> bool:
        """True if every named identity field (``blog_id=3``, ...) has the given value."""
        return all(getattr(self, name, None) == value for name, value in expected.items())

    def fields(self) -> dict[str, Any]:
        return dataclasses.asdict(self)  # type: ignore[call-overload]

    def _layout_values(self) -> dict[str, Any]:
        return self.fields()

    @classmethod
    def _from_layout(cls, parsed: Any) -> "MemoRecord":
        names = [f.name for f in dataclasses.fields(cls)]  # type: ignore[arg-type]
        return cls(**{name: parsed[name] for name in names})

    def to_payload(self) -> bytes:
        """Validate and Borsh-serialize the record."""
        self.validate()
        return self.LAYOUT.build(
            {
                "version": RECORD_VERSION,
                "category": self.CATEGORY,
                "operation": self.OPERATION,
                **self._layout_values(),
            }
        )


# ============ Profile ============


@dataclass(frozen=True)
class ProfileCreation(MemoRecord):
    CATEGORY = "profile"
    OPERATION = "create_profile"
    LAYOUT = CStruct(
        *_HEADER,
        "user_pubkey" / String,
        "username" / String,
        "image" / String,
        "about_me" / Option(String),
    )

    user_pubkey: str
    username: str
    image: str = ""
    about_me: Optional[str] = None

    def validate(self) -> None:
        check_text("username", self.username, MAX_USERNAME_LENGTH, min_len=1)
        check_text("image", self.image, MAX_PROFILE_IMAGE_LENGTH)
        check_optional_text("about_me", self.about_me, MAX_ABOUT_ME_LENGTH)


@dataclass(frozen=True)
class ProfileUpdate(MemoRecord):
    """
    Partial profile update.

    ``None`` leaves a field unchanged. For ``about_me`` an empty string
    clears the stored text (``Some(None)`` on the wire).
    """

    CATEGORY = "profile"
    OPERATION = "update_profile"
    LAYOUT = CStruct(
        *_HEADER,
        "user_pubkey" / String,
        "username" / Option(String),
        "image" / Option(String),
        "about_me_present" / U8,
        "about_me" / If(this.about_me_present == 1, Option(String)),
    )

    user_pubkey: str
    username: Optional[str] = None
    image: Optional[str] = None
    about_me: Optional[str] = None

    def validate(self) -> None:
        check_optional_text("username", self.username, MAX_USERNAME_LENGTH, min_len=1)
        check_optional_text("image", self.image, MAX_PROFILE_IMAGE_LENGTH)
        check_optional_text("about_me", self.about_me, MAX_ABOUT_ME_LENGTH)

    def _layout_values(self) -> dict[str, Any]:
        values = self.fields()
        values["about_me_present"] = 0 if self.about_me is None else 1
        values["about_me"] = self.about_me or None
        return values

    @classmethod
    def _from_layout(cls, parsed: Any) -> "ProfileUpdate":
        about_me: Optional[str] = None
        if parsed["about_me_present"]:
            about_me = parsed["about_me"] or ""
        return cls(
            user_pubkey=parsed["user_pubkey"],
            username=parsed["username"],
            image=parsed["image"],
            about_me=about_me,
        )


# ============ Blog ============


@dataclass(frozen=True)
class BlogCreation(MemoRecord):
    CATEGORY = "blog"
    OPERATION = "create_blog"
    LAYOUT = CStruct(
        *_HEADER,
        "blog_id" / U64,
        "name" / String,
        "description" / String,
        "image" / String,
    )

    blog_id: int
    name: str
    description: str = ""
    image: str = ""

    def validate(self) -> None:
        check_u64("blog_id", self.blog_id)
        check_text("name", self.name, MAX_BLOG_NAME_LENGTH, min_len=1)
        check_text("description", self.description, MAX_BLOG_DESCRIPTION_LENGTH)
        check_text("image", self.image, MAX_BLOG_IMAGE_LENGTH)


@dataclass(frozen=True)
class BlogUpdate(MemoRecord):
    CATEGORY = "blog"
    OPERATION = "update_blog"
    LAYOUT = CStruct(
        *_HEADER,
        "blog_id" / U64,
        "name" / Option(String),
        "description" / Option(String),
        "image" / Option(String),
    )

    blog_id: int
    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None

    def validate(self) -> None:
        check_u64("blog_id", self.blog_id)
        check_optional_text("name", self.name, MAX_BLOG_NAME_LENGTH, min_len=1)
        check_optional_text("description", self.description, MAX_BLOG_DESCRIPTION_LENGTH)
        check_optional_text("image", self.image, MAX_BLOG_IMAGE_LENGTH)


@dataclass(frozen=True)
class BlogBurn(MemoRecord):
    CATEGORY = "blog"
    OPERATION = "burn_for_blog"
    LAYOUT = CStruct(
        *_HEADER,
        "blog_id" / U64,
        "burner" / String,
        "message" / String,
    )

    blog_id: int
    burner: str
    message: str = ""

    def validate(self) -> None:
        check_u64("blog_id", self.blog_id)
        check_text("message", self.message, MAX_BLOG_MESSAGE_LENGTH)


@dataclass(frozen=True)
class BlogMint(MemoRecord):
    CATEGORY = "blog"
    OPERATION = "mint_for_blog"
    LAYOUT = CStruct(
        *_HEADER,
        "blog_id" / U64,
        "minter" / String,
        "message" / String,
    )

    blog_id: int
    minter: str
    message: str = ""

    def validate(self) -> None:
        check_u64("blog_id", self.blog_id)
        check_text("message", self.message, MAX_BLOG_MESSAGE_LENGTH)


# ============ Forum ============


@dataclass(frozen=True)
class PostCreation(MemoRecord):
    CATEGORY = "forum"
    OPERATION = "create_post"
    LAYOUT = CStruct(
        *_HEADER,
        "creator" / String,
        "post_id" / U64,
        "title" / String,
        "content" / String,
        "image" / String,
    )

    creator: str
    post_id: int
    title: str
    content: str
    image: str = ""

    def validate(self) -> None:
        check_u64("post_id", self.post_id)
        check_text("title", self.title, MAX_POST_TITLE_LENGTH, min_len=1)
        check_text("content", self.content, MAX_POST_CONTENT_LENGTH, min_len=1)
        check_text("image", self.image, MAX_POST_IMAGE_LENGTH)


@dataclass(frozen=True)
class PostBurn(MemoRecord):
    CATEGORY = "forum"
    OPERATION = "burn_for_post"
    LAYOUT = CStruct(
        *_HEADER,
        "user" / String,
        "post_id" / U64,
        "message" / String,
    )

    user: str
    post_id: int
    message: str = ""

    def validate(self) -> None:
        check_u64("post_id", self.post_id)
        check_text("message", self.message, MAX_REPLY_MESSAGE_LENGTH)


@dataclass(frozen=True)
class PostMint(MemoRecord):
    CATEGORY = "forum"
    OPERATION = "mint_for_post"
    LAYOUT = CStruct(
        *_HEADER,
        "user" / String,
        "post_id" / U64,
        "message" / String,
    )

    user: str
    post_id: int
    message: str = ""

    def validate(self) -> None:
        check_u64("post_id", self.post_id)
        check_text("message", self.message, MAX_REPLY_MESSAGE_LENGTH)


# ============ Project ============


@dataclass(frozen=True)
class ProjectCreation(MemoRecord):
    CATEGORY = "project"
    OPERATION = "create_project"
    LAYOUT = CStruct(
        *_HEADER,
        "project_id" / U64,
        "name" / String,
        "description" / String,
        "image" / String,
        "website" / String,
        "tags" / Vec(String),
    )

    project_id: int
    name: str
    description: str = ""
    image: str = ""
    website: str = ""
    tags: tuple[str, ...] = ()

    def validate(self) -> None:
        check_u64("project_id", self.project_id)
        check_text("name", self.name, MAX_PROJECT_NAME_LENGTH, min_len=1)
        check_text("description", self.description, MAX_PROJECT_DESCRIPTION_LENGTH)
        check_text("image", self.image, MAX_PROJECT_IMAGE_LENGTH)
        check_text("website", self.website, MAX_PROJECT_WEBSITE_LENGTH)
        check_tags("tags", self.tags)

    def _layout_values(self) -> dict[str, Any]:
        values = self.fields()
        values["tags"] = list(self.tags)
        return values

    @classmethod
    def _from_layout(cls, parsed: Any) -> "ProjectCreation":
        return cls(
            project_id=parsed["project_id"],
            name=parsed["name"],
            description=parsed["description"],
            image=parsed["image"],
            website=parsed["website"],
            tags=tuple(parsed["tags"]),
        )


@dataclass(frozen=True)
class ProjectUpdate(MemoRecord):
    CATEGORY = "project"
    OPERATION = "update_project"
    LAYOUT = CStruct(
        *_HEADER,
        "project_id" / U64,
        "name" / Option(String),
        "description" / Option(String),
        "image" / Option(String),
        "website" / Option(String),
        "tags" / Option(Vec(String)),
    )

    project_id: int
    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    website: Optional[str] = None
    tags: Optional[tuple[str, ...]] = None

    def validate(self) -> None:
        check_u64("project_id", self.project_id)
        check_optional_text("name", self.name, MAX_PROJECT_NAME_LENGTH, min_len=1)
        check_optional_text("description", self.description, MAX_PROJECT_DESCRIPTION_LENGTH)
        check_optional_text("image", self.image, MAX_PROJECT_IMAGE_LENGTH)
        check_optional_text("website", self.website, MAX_PROJECT_WEBSITE_LENGTH)
        if self.tags is not None:
            check_tags("tags", self.tags)

    def _layout_values(self) -> dict[str, Any]:
        values = self.fields()
        values["tags"] = None if self.tags is None else list(self.tags)
        return values

    @classmethod
    def _from_layout(cls, parsed: Any) -> "ProjectUpdate":
        tags = parsed["tags"]
        return cls(
            project_id=parsed["project_id"],
            name=parsed["name"],
            description=parsed["description"],
            image=parsed["image"],
            website=parsed["website"],
            tags=None if tags is None else tuple(tags),
        )


@dataclass(frozen=True)
class ProjectBurn(MemoRecord):
    CATEGORY = "project"
    OPERATION = "burn_for_project"
    LAYOUT = CStruct(
        *_HEADER,
        "project_id" / U64,
        "burner" / String,
        "message" / String,
    )

    project_id: int
    burner: str
    message: str = ""

    def validate(self) -> None:
        check_u64("project_id", self.project_id)
        check_text("message", self.message, MAX_PROJECT_MESSAGE_LENGTH)


# ============ Chat ============


@dataclass(frozen=True)
class ChatMessage(MemoRecord):
    """
    A message sent to a chat group.

    Unlike the other records this one is not wrapped in a ``BurnMemo``:
    sending mints, so the memo is the bare base64 record.
    """

    CATEGORY = "chat"
    OPERATION = "send_message"
    LAYOUT = CStruct(
        *_HEADER,
        "group_id" / U64,
        "sender" / String,
        "message" / String,
        "receiver" / Option(String),
        "reply_to_sig" / Option(String),
    )

    group_id: int
    sender: str
    message: str
    receiver: Optional[str] = None
    reply_to_sig: Optional[str] = None

    def validate(self) -> None:
        check_u64("group_id", self.group_id)
        check_text("message", self.message, MAX_CHAT_MESSAGE_LENGTH, min_len=1)


RECORD_TYPES: dict[tuple[str, str], type[MemoRecord]] = {
    (cls.CATEGORY, cls.OPERATION): cls
    for cls in (
        ProfileCreation,
        ProfileUpdate,
        BlogCreation,
        BlogUpdate,
        BlogBurn,
        BlogMint,
        PostCreation,
        PostBurn,
        PostMint,
        ProjectCreation,
        ProjectUpdate,
        ProjectBurn,
        ChatMessage,
    )
}


def parse_record(payload: bytes) -> Optional[MemoRecord]:
    """
    Decode a payload back into its record.

    Returns None for anything that is not a known, well-formed record:
    payloads come from arbitrary ledger history.
    """
    try:
        header = HEADER_LAYOUT.parse(payload)
        if header["version"] != RECORD_VERSION:
            return None
        record_type = RECORD_TYPES.get((header["category"], header["operation"]))
        if record_type is None:
            return None
        stream = io.BytesIO(payload)
        parsed = record_type.LAYOUT.parse_stream(stream)
        # Borsh rejects trailing bytes
        if stream.read(1):
            return None
        return record_type._from_layout(parsed)
    except (ConstructError, UnicodeDecodeError, ValueError, TypeError, KeyError):
        return None
