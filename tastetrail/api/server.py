from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Path, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from tastetrail import __version__
from tastetrail.config import Config, load_config
from tastetrail.db import connect, init_db
from tastetrail.models import TokenClaims

from tastetrail.auth import get_config, get_current_user, require_admin
from tastetrail.auth.crud import (
    bootstrap_admin_if_needed,
    create_user,
    get_user_by_email,
    get_user_role,
    list_users,
    public_user,
    verify_user_credentials,
)
from tastetrail.auth.security import create_access_token
from tastetrail.catalog.documents import (
    CATEGORIES,
    MAX_DOC_ID,
    RECIPES,
    delete_document,
    insert_document,
    list_documents,
    update_document,
)


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


router = APIRouter()


# -----------------------------
# Health
# -----------------------------


@router.get("/", response_class=PlainTextResponse)
def root() -> str:
    return "TasteTrail Server Running..."


@router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


# -----------------------------
# Auth
# -----------------------------


class RegisterRequest(BaseModel):
    fullName: str = ""
    email: str
    password: str
    photo: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


def _issue_token(cfg: Config, *, email: str, role: str) -> str:
    return create_access_token(
        secret=cfg.AUTH_JWT_SECRET,
        email=email,
        role=role,
        expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
    )


@router.post("/auth/register")
def auth_register(payload: RegisterRequest, cfg: Config = Depends(get_config)) -> Dict[str, Any]:
    """Create a user account (always role=user) and log it in."""
    with connect(cfg.DB_DSN) as conn:
        try:
            u = create_user(
                conn,
                email=payload.email,
                password=payload.password,
                full_name=payload.fullName,
                photo=(payload.photo or "").strip() or cfg.DEFAULT_PHOTO_URL,
            )
        except ValueError as e:
            # email_exists included: duplicate registration is a request-level failure.
            raise HTTPException(status_code=400, detail=str(e))

    token = _issue_token(cfg, email=str(u["email"]), role=str(u["role"]))
    return {"success": True, "token": token, "role": u["role"]}


@router.post("/auth/login")
def auth_login(payload: LoginRequest, cfg: Config = Depends(get_config)) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        try:
            row = verify_user_credentials(conn, payload.email, payload.password)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        u = public_user(row)

    token = _issue_token(cfg, email=str(u["email"]), role=str(u["role"]))
    return {
        "success": True,
        "token": token,
        "role": u["role"],
        "photo": u.get("photo") or cfg.DEFAULT_PHOTO_URL,
    }


# -----------------------------
# Users
# -----------------------------


@router.get("/users/me")
def users_me(
    claims: TokenClaims = Depends(get_current_user),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_email(conn, claims.email)
    if row is None:
        raise HTTPException(status_code=404, detail="user_not_found")
    return public_user(row)


@router.get("/users/role")
def users_role(
    email: str = Query(...),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        role = get_user_role(conn, email)
    if role is None:
        raise HTTPException(status_code=404, detail="user_not_found")
    return {"role": role}


@router.get("/users")
def users_list(
    _admin: TokenClaims = Depends(require_admin),
    cfg: Config = Depends(get_config),
) -> List[Dict[str, Any]]:
    with connect(cfg.DB_DSN) as conn:
        return list_users(conn)


# -----------------------------
# Admin: recipes
# -----------------------------


def _store_error(e: ValueError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(e))


@router.get("/admin/recipes")
def recipes_list(cfg: Config = Depends(get_config)) -> List[Dict[str, Any]]:
    with connect(cfg.DB_DSN) as conn:
        return list_documents(conn, RECIPES)


@router.post("/admin/recipes")
def recipes_create(
    payload: Dict[str, Any] = Body(...),
    _admin: TokenClaims = Depends(require_admin),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        try:
            recipe_id = insert_document(conn, RECIPES, payload)
        except ValueError as e:
            raise _store_error(e)
    return {"success": True, "recipeId": recipe_id}


@router.put("/admin/recipes/{recipe_id}")
def recipes_update(
    recipe_id: int = Path(..., ge=1, le=MAX_DOC_ID),
    payload: Dict[str, Any] = Body(...),
    _admin: TokenClaims = Depends(require_admin),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        try:
            found = update_document(conn, RECIPES, recipe_id, payload)
        except ValueError as e:
            raise _store_error(e)
    if not found:
        raise HTTPException(status_code=404, detail="recipe_not_found")
    return {"success": True}


@router.delete("/admin/recipes/{recipe_id}")
def recipes_delete(
    recipe_id: int = Path(..., ge=1, le=MAX_DOC_ID),
    _admin: TokenClaims = Depends(require_admin),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        found = delete_document(conn, RECIPES, recipe_id)
    if not found:
        raise HTTPException(status_code=404, detail="recipe_not_found")
    return {"success": True}


# -----------------------------
# Admin: categories
# -----------------------------


@router.get("/admin/categories")
def categories_list(cfg: Config = Depends(get_config)) -> List[Dict[str, Any]]:
    with connect(cfg.DB_DSN) as conn:
        return list_documents(conn, CATEGORIES)


@router.post("/admin/categories")
def categories_create(
    payload: Dict[str, Any] = Body(...),
    _admin: TokenClaims = Depends(require_admin),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        try:
            category_id = insert_document(conn, CATEGORIES, payload)
        except ValueError as e:
            raise _store_error(e)
    return {"success": True, "message": "Category created", "categoryId": category_id}


@router.put("/admin/categories/{category_id}")
def categories_update(
    category_id: int = Path(..., ge=1, le=MAX_DOC_ID),
    payload: Dict[str, Any] = Body(...),
    _admin: TokenClaims = Depends(require_admin),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        try:
            found = update_document(conn, CATEGORIES, category_id, payload)
        except ValueError as e:
            raise _store_error(e)
    if not found:
        raise HTTPException(status_code=404, detail="category_not_found")
    return {"success": True, "message": "Category updated"}


@router.delete("/admin/categories/{category_id}")
def categories_delete(
    category_id: int = Path(..., ge=1, le=MAX_DOC_ID),
    _admin: TokenClaims = Depends(require_admin),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        found = delete_document(conn, CATEGORIES, category_id)
    if not found:
        raise HTTPException(status_code=404, detail="category_not_found")
    return {"success": True, "message": "Category deleted"}


# -----------------------------
# App
# -----------------------------


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed bodies / params are client errors like any other: 400, not 422.
    return JSONResponse(
        status_code=400,
        content={"detail": "invalid_request", "errors": jsonable_encoder(exc.errors())},
    )


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    # A failing storage call ends this request only.
    _debug(f"Unhandled error on {request.method} {request.url.path}: {exc!r}")
    return JSONResponse(status_code=500, content={"detail": "internal_error"})


def create_app(cfg: Config | None = None) -> FastAPI:
    """Build the API around an explicit, immutable Config."""
    cfg = cfg or load_config()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        # Ensure schema exists.
        init_db(cfg.DB_DSN)

        # Bootstrap first admin if needed (only when users table is empty)
        boot = bootstrap_admin_if_needed(cfg)
        if boot:
            _debug(f"Bootstrapped initial admin user: email={boot.get('email')} role={boot.get('role')}")
        yield

    app = FastAPI(title="TasteTrail API", version=__version__, lifespan=lifespan)
    # Auth deps and handlers read config from here.
    app.state.cfg = cfg

    origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=cfg.CORS_ALLOW_CREDENTIALS,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unhandled_error)

    app.include_router(router)
    return app


app = create_app()
