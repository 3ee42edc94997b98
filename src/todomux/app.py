"""Application wiring.

router: root
    middleware:
        - logger
        - otel (when enabled)
        - recovery
    handlers:
        GET     /               home
        POST    /json           echo_json
        POST    /form           echo_form
        GET     /search         search_users
        POST    /users          create_user
        GET     /users          list_users
        POST    /todos          create_todo
        GET     /todos          list_todos
        GET     /todos/:id      get_todo
        PUT     /todos/:id      update_todo
        DELETE  /todos/:id      delete_todo
        GET     /product/:id    get_product
    not found, method not allowed:
        not_found
    mounts:
        /public     public_router
        /private    private_router

router: public_router
    handlers:
        GET     /info       public_info

router: private_router
    middleware:
        - api_key
    handlers:
        GET     /data       private_data
        POST    /create     private_create
"""

import sqlite3

from todomux.config import Settings
from todomux.handlers import pages, todos, users
from todomux.middleware.auth import api_key
from todomux.middleware.logger import logger as request_logger
from todomux.middleware.recovery import recovery
from todomux.models import TODOS, USERS, Todo, User
from todomux.router import Router
from todomux.store import Gateway


def build_router(db: sqlite3.Connection, settings: Settings) -> Router:
    """Build the application router; tables are provisioned up front."""
    user_store: Gateway[User] = Gateway(db, USERS)
    todo_store: Gateway[Todo] = Gateway(db, TODOS)
    user_store.migrate()
    todo_store.migrate()

    router = Router()
    router.use(request_logger())
    if settings.otel:
        from todomux.middleware.otel import otel

        router.use(otel())
    router.use(recovery())
    router.not_found(pages.not_found)
    router.method_not_allowed(pages.not_found)

    router.get("/", pages.home)
    router.post("/json", users.echo_json)
    router.post("/form", users.echo_form)
    router.get("/search", users.search_users(user_store))
    router.post("/users", users.create_user(user_store))
    router.get("/users", users.list_users(user_store))
    router.post("/todos", todos.create_todo(todo_store))
    router.get("/todos", todos.list_todos(todo_store))
    router.get("/todos/:id", todos.get_todo(todo_store))
    router.put("/todos/:id", todos.update_todo(todo_store))
    router.delete("/todos/:id", todos.delete_todo(todo_store))
    router.get("/product/:id", pages.get_product)
    router.mount("/public", public_router())
    router.mount("/private", private_router(settings.api_key))
    return router


def public_router() -> Router:
    router = Router()
    router.get("/info", pages.public_info)
    return router


def private_router(key: str) -> Router:
    router = Router()
    router.use(api_key(key))
    router.get("/data", pages.private_data)
    router.post("/create", pages.private_create)
    return router
