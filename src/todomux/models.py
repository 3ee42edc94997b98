"""Record types and their storage shapes."""

import sqlite3
from dataclasses import dataclass
from datetime import datetime

from todomux.store import Column, Shape


@dataclass(slots=True, frozen=True)
class User:
    id: int = 0
    name: str = ""
    email: str = ""

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email}


@dataclass(slots=True, frozen=True)
class Timestamps:
    """Creation, last update and soft-delete bookkeeping of a record."""

    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
        }


@dataclass(slots=True, frozen=True)
class Todo:
    id: int = 0
    title: str = ""
    description: str = ""
    timestamps: Timestamps | None = None

    def to_dict(self) -> dict:
        data: dict = {"id": self.id, "title": self.title, "description": self.description}
        if self.timestamps is not None:
            data |= self.timestamps.to_dict()
        return data


@dataclass(slots=True, frozen=True)
class Product:
    """Synthetic, never persisted."""

    id: str
    name: str = "MSI"
    price: str = "9.000.000"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "price": self.price}


# --- storage shapes -----------------------------------------------------------
USER_FIELDS = {"id": int, "name": str, "email": str}
TODO_FIELDS = {"title": str, "description": str}


def _user_from_row(row: sqlite3.Row) -> User:
    return User(id=row["id"], name=row["name"], email=row["email"])


def _todo_from_row(row: sqlite3.Row) -> Todo:
    deleted_at = row["deleted_at"]
    return Todo(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        timestamps=Timestamps(
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            deleted_at=datetime.fromisoformat(deleted_at) if deleted_at else None,
        ),
    )


USERS: Shape[User] = Shape(
    name="User",
    table="users",
    columns=(Column("name", "TEXT"), Column("email", "TEXT")),
    from_row=_user_from_row,
    to_row=lambda user: {"name": user.name, "email": user.email},
)

TODOS: Shape[Todo] = Shape(
    name="Todo",
    table="todos",
    columns=(Column("title", "TEXT"), Column("description", "TEXT")),
    from_row=_todo_from_row,
    to_row=lambda todo: {"title": todo.title, "description": todo.description},
    soft_delete=True,
)
