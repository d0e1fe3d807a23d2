# lifewheel/infrastructure/repositories_user.py
from __future__ import annotations

import builtins

from sqlalchemy.orm import Session

from .logging import log_database_operation as log_op
from .models import UserORM
from .repositories_base import BaseRepository as GenericBaseRepository


class UserRepo(GenericBaseRepository[UserORM]):
    model = UserORM

    def __init__(self, session: Session):
        super().__init__(session)

    @log_op("user.get")
    def get(self, id_: str) -> UserORM | None:
        return super().get(id_)

    @log_op("user.get_by_username")
    def get_by_username(self, username: str) -> UserORM | None:
        return self.s.query(UserORM).filter_by(username=username).one_or_none()

    @log_op("user.create")
    def create(self, **fields) -> UserORM:
        return super().create(**fields)

    @log_op("user.refresh_profile")
    def refresh_profile(self, obj: UserORM, *, name: str, age: int, email: str) -> UserORM:
        """Update contact details only; id, username and role never change."""
        obj.name = name
        obj.age = age
        obj.email = email
        self.s.flush()
        return obj

    @log_op("user.list_all")
    def list_all(self) -> builtins.list[UserORM]:
        return super().list(order_by=[UserORM.created_at.asc()])
