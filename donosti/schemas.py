import datetime as dt
import uuid
from datetime import date, datetime
from typing import Annotated, Dict, List, Literal, Optional, Union

from fastapi_users import schemas
from pydantic import BaseModel, ConfigDict, EmailStr, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

# =========================
# AUTH USER SCHEMAS
# =========================
class UserRead(schemas.BaseUser[uuid.UUID]):
    pass

class UserCreate(schemas.BaseUserCreate):
    pass

class UserUpdate(schemas.BaseUserUpdate):
    pass


# =========================
# KV RECORD BASE
# =========================
class CamelModel(BaseModel):
    """Records are stored and served with camelCase keys (``authorId``, ``replyCount``...)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


ThreadCategory = Literal["questions", "help", "general", "events", "housing", "meetup"]
EntityKind = Literal["post", "thread", "reply"]


# =========================
# USER PROFILE SCHEMAS
# =========================
class UserProfile(CamelModel):
    id: str
    email: Optional[str] = None
    name: str = "Anonymous"
    verified: bool = False
    admin: bool = False

class UserListing(UserProfile):
    created_at: Optional[datetime] = None

class SignupRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)
    name: str = Field(min_length=1)
    verification_code: str = ""

class VerifyCodeRequest(CamelModel):
    code: Optional[str] = None


# =========================
# POST SCHEMAS
# =========================
# Fields every tip form sends, whatever the category.
class TipFields(CamelModel):
    area: Optional[str] = None
    price: Optional[str] = None
    rating: Optional[float] = None


# Category-specific fields. Each variant is a member of a tagged union keyed by
# ``category`` so a food tip never carries course fields and vice versa.
class CourseFields(CamelModel):
    category: Literal["courses"]
    ects: Optional[float] = None
    semester: Optional[str] = None
    year: Optional[int] = None
    workload: Optional[str] = None
    examination_type: Optional[str] = None
    online_or_campus: Optional[str] = None
    overall_score: Optional[float] = None

class FoodFields(CamelModel):
    category: Literal["food"]
    restaurant_name: Optional[str] = None
    food_category: Optional[str] = None
    food_rating: Optional[float] = None
    location: Optional[str] = None

class ClubFields(CamelModel):
    category: Literal["clubs"]
    name: Optional[str] = None
    music_style: Optional[str] = None
    atmosphere_rating: Optional[float] = None

class ActivityFields(CamelModel):
    category: Literal["activities"]
    activity_name: Optional[str] = None
    location: Optional[str] = None

class TripFields(CamelModel):
    category: Literal["trips"]
    city_name: Optional[str] = None
    travel_type: Optional[str] = None
    travel_time: Optional[str] = None
    trip_dates: List[date] = Field(default_factory=list)
    overall_rating: Optional[float] = None

    @field_validator("trip_dates", mode="before")
    @classmethod
    def _day_keys(cls, value):
        # "2025-05-01T10:00:00Z" counts as 2025-05-01; unparseable entries are dropped
        if not isinstance(value, list):
            return value
        days = []
        for item in value:
            if isinstance(item, date):
                days.append(item)
                continue
            try:
                days.append(date.fromisoformat(str(item)[:10]))
            except ValueError:
                continue
        return days


class PostRecord(TipFields):
    id: str
    title: str
    content: str = ""
    author_id: str
    author_name: str = "Anonymous"
    verified: bool = False
    timestamp: datetime
    photo_url: Optional[str] = None
    upvotes: int = Field(default=0, ge=0)
    report_count: int = Field(default=0, ge=0)

class CoursePost(PostRecord, CourseFields):
    pass

class FoodPost(PostRecord, FoodFields):
    pass

class ClubPost(PostRecord, ClubFields):
    pass

class ActivityPost(PostRecord, ActivityFields):
    pass

class TripPost(PostRecord, TripFields):
    pass

Post = Annotated[
    Union[CoursePost, FoodPost, ClubPost, ActivityPost, TripPost],
    Field(discriminator="category"),
]
post_adapter: TypeAdapter = TypeAdapter(Post)


class PostCreateBase(TipFields):
    title: str = Field(min_length=1)
    content: str = ""
    # data URL ("data:image/jpeg;base64,...") or bare base64
    photo_data: Optional[str] = None

class CoursePostCreate(PostCreateBase, CourseFields):
    pass

class FoodPostCreate(PostCreateBase, FoodFields):
    pass

class ClubPostCreate(PostCreateBase, ClubFields):
    pass

class ActivityPostCreate(PostCreateBase, ActivityFields):
    pass

class TripPostCreate(PostCreateBase, TripFields):
    pass

PostCreate = Annotated[
    Union[CoursePostCreate, FoodPostCreate, ClubPostCreate, ActivityPostCreate, TripPostCreate],
    Field(discriminator="category"),
]
post_create_adapter: TypeAdapter = TypeAdapter(PostCreate)


# =========================
# COMMENT SCHEMAS
# =========================
class Comment(CamelModel):
    id: str
    post_id: str
    author_id: str
    author_name: str = "Anonymous"
    verified: bool = False
    content: str
    timestamp: datetime

class CommentCreate(CamelModel):
    content: str = Field(min_length=1)


# =========================
# FORUM SCHEMAS
# =========================
class Thread(CamelModel):
    id: str
    category: ThreadCategory
    title: str
    content: str
    author_id: str
    author_name: str = "Anonymous"
    verified: bool = False
    timestamp: datetime
    upvotes: int = Field(default=0, ge=0)
    reply_count: int = Field(default=0, ge=0)
    last_activity: datetime
    solved: bool = False

class ThreadCreate(CamelModel):
    title: str = Field(min_length=1)
    category: ThreadCategory
    content: str = Field(min_length=1)

class Reply(CamelModel):
    id: str
    thread_id: str
    author_id: str
    author_name: str = "Anonymous"
    verified: bool = False
    content: str
    timestamp: datetime
    upvotes: int = Field(default=0, ge=0)
    helpful: bool = False

class ReplyCreate(CamelModel):
    content: str = Field(min_length=1)


# =========================
# EVENT / CALENDAR SCHEMAS
# =========================
class Event(CamelModel):
    id: str
    title: str
    date: dt.date
    info: str = ""
    author_id: str
    author_name: str = "Anonymous"
    verified: bool = False
    timestamp: datetime

class EventCreate(CamelModel):
    title: str = Field(min_length=1)
    date: dt.date
    info: str = ""
    # viewer's local date; defaults to the server date
    today: Optional[dt.date] = None

class CalendarEntry(CamelModel):
    id: str
    source_id: str
    kind: Literal["event", "trip"]
    title: str
    date: dt.date
    info: str = ""
    author_id: str
    author_name: str = "Anonymous"
    verified: bool = False


# =========================
# LEDGER / SCORING / ANALYTICS
# =========================
class UpvoteResult(CamelModel):
    upvotes: int
    has_upvoted: bool

class ContributorScore(CamelModel):
    user_id: str
    name: str = "Anonymous"
    posts: int = 0
    comments: int = 0
    threads: int = 0
    replies: int = 0
    upvotes_received: int = 0
    total_score: int = 0

class Analytics(CamelModel):
    total_posts: int = 0
    verified_users: int = 0
    top_searches: Dict[str, int] = Field(default_factory=dict)

class SearchQuery(CamelModel):
    query: Optional[str] = None
