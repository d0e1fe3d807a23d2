from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType


class UserRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class Classification(str, enum.Enum):
    LOW = "LOW"
    UNBALANCED = "UNBALANCED"
    BALANCED_OR_HIGH = "BALANCED_OR_HIGH"


class Step(str, enum.Enum):
    INTRO = "intro"
    RATING = "rating"
    PROCESSING = "processing"
    RESULT = "result"


@dataclass(frozen=True, slots=True)
class Category:
    id: str
    name: str
    color: str


# Display order matters for the wheel; scoring does not depend on it.
CATEGORIES: tuple[Category, ...] = (
    Category("spirituality", "معنویت", "#ec4899"),
    Category("family", "خانوادگی", "#fbcfe8"),
    Category("personal", "فردی", "#d8b4fe"),
    Category("social", "اجتماعی", "#6b7280"),
    Category("health", "تندرستی", "#facc15"),
    Category("work", "کار", "#2563eb"),
)


def find_category(category_id: str, categories: Iterable[Category] = CATEGORIES) -> Category | None:
    for category in categories:
        if category.id == category_id:
            return category
    return None


class ScoreBoard(Mapping[str, int]):
    """
    Category id -> integer score for one assessment.

    Created with every category at the default score so the board is always
    fully populated. ``freeze()`` makes it read-only; the wheel entry keeps a
    separate snapshot taken from ``snapshot()``.
    """

    __slots__ = ("_categories", "_scores", "_frozen", "min_score", "max_score")

    def __init__(
        self,
        categories: Iterable[Category] = CATEGORIES,
        default: int = 5,
        min_score: int = 1,
        max_score: int = 10,
    ):
        self._categories = tuple(categories)
        self.min_score = min_score
        self.max_score = max_score
        self._scores: dict[str, int] = {c.id: default for c in self._categories}
        self._frozen = False

    @classmethod
    def from_mapping(
        cls,
        scores: Mapping[str, int],
        categories: Iterable[Category] = CATEGORIES,
        min_score: int = 1,
        max_score: int = 10,
    ) -> ScoreBoard:
        board = cls(categories, min_score=min_score, max_score=max_score)
        for cid in board._scores:
            if cid in scores:
                board.set(cid, scores[cid])
        return board

    @property
    def categories(self) -> tuple[Category, ...]:
        return self._categories

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __getitem__(self, key: str) -> int:
        return self._scores[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._scores)

    def __len__(self) -> int:
        return len(self._scores)

    def clamp(self, value: int) -> int:
        return max(self.min_score, min(self.max_score, int(value)))

    def set(self, category_id: str, value: int) -> bool:
        """Clamp ``value`` into range and store it. Unknown ids and frozen boards are no-ops."""
        if self._frozen or category_id not in self._scores:
            return False
        self._scores[category_id] = self.clamp(value)
        return True

    def freeze(self) -> None:
        self._frozen = True

    def snapshot(self) -> Mapping[str, int]:
        return MappingProxyType(dict(self._scores))

    def __repr__(self) -> str:
        return f"ScoreBoard({self._scores!r}, frozen={self._frozen})"


@dataclass(slots=True)
class User:
    id: str
    username: str
    name: str
    mobile: str
    age: int
    email: str
    role: UserRole = UserRole.USER


@dataclass(frozen=True, slots=True)
class UserContext:
    """Identity handed to every component that acts on behalf of a user."""

    user_id: str
    name: str
    email: str | None = None
    role: UserRole = UserRole.USER

    @classmethod
    def for_user(cls, user: User) -> UserContext:
        return cls(user_id=user.id, name=user.name, email=user.email or None, role=user.role)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(frozen=True, slots=True)
class WheelEntry:
    id: str
    user_id: str
    created_at: datetime
    scores: Mapping[str, int]
    narrative: str | None = None
    contact_email: str | None = None

    def average(self, category_count: int | None = None) -> float:
        count = category_count if category_count is not None else len(CATEGORIES)
        return sum(self.scores.values()) / count

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat(),
            "scores": dict(self.scores),
            "narrative": self.narrative,
            "contact_email": self.contact_email,
        }


@dataclass(frozen=True, slots=True)
class AdminSettings:
    intro_text: str
    advice_template_low: str
    advice_template_high: str
    advice_template_unbalanced: str

    SLOTS = (
        "intro_text",
        "advice_template_low",
        "advice_template_high",
        "advice_template_unbalanced",
    )

    def to_dict(self) -> dict[str, str]:
        return {slot: getattr(self, slot) for slot in self.SLOTS}


DEFAULT_ADMIN_SETTINGS = AdminSettings(
    intro_text=(
        "به اپلیکیشن چرخ زندگی «مکتب کمال» خوش آمدید. این ابزار به شما کمک می‌کند تا "
        "تعادل را در جنبه‌های مختلف زندگی خود بسنجید. لطفاً به هر بخش صادقانه امتیاز دهید."
    ),
    advice_template_low=(
        "به نظر می‌رسد در چندین جنبه نیاز به بازنگری دارید. پیشنهاد می‌کنیم روی یکی از "
        "بخش‌ها تمرکز کنید."
    ),
    advice_template_high="تبریک! شما تعادل خوبی در زندگی دارید. سعی کنید این روند را حفظ کنید.",
    advice_template_unbalanced=(
        "چرخ زندگی شما کمی نامتوازن است. برای حرکت روان‌تر در زندگی، باید به بخش‌های "
        "ضعیف‌تر توجه بیشتری کنید."
    ),
)


@dataclass(frozen=True, slots=True)
class TrendPoint:
    label: str
    created_at: datetime
    average: float


@dataclass(slots=True)
class PendingDelivery:
    entry_id: str
    email: str
    queued_at: datetime = field(default_factory=datetime.utcnow)
