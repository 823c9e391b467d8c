import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field

import auth
from auth import Identity, require_auth, require_super_admin
from config import Settings, get_app_settings, get_settings
from database import FEEDBACK, PROMPTS, MongoStore, get_store, utcnow_iso
from errors import register_error_handlers
from export import export_filename, to_csv
from schemas import FEEDBACK_COLUMNS, PROMPT_COLUMNS, RATING_FIELDS, Feedback as FeedbackSchema, Prompt as PromptSchema

logger = logging.getLogger(__name__)

# ---------------------- Models ----------------------

class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""

class PublicUser(BaseModel):
    email: str
    role: str

class LoginResponse(BaseModel):
    token: str
    user: PublicUser

class CreateUserRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class CreateUserResponse(BaseModel):
    success: bool = True
    insertedId: str

class InsertedResponse(BaseModel):
    insertedId: str

class UserListItem(BaseModel):
    id: str = Field(..., alias="_id")
    email: str
    role: str
    created_at: Optional[str] = None

class FeedbackStats(BaseModel):
    count: int
    averages: Dict[str, Optional[float]]

# ---------------------- Helpers ----------------------

def average_ratings(records: List[Dict[str, Any]]) -> Dict[str, Optional[float]]:
    """Mean of each rating over the submissions that answered it.

    Unanswered (null) ratings are left out rather than counted as 0, so an
    optional question nobody answered averages to None instead of dragging
    the score down.
    """
    averages: Dict[str, Optional[float]] = {}
    for field in RATING_FIELDS:
        values = [r[field] for r in records if isinstance(r.get(field), (int, float))]
        averages[field] = round(sum(values) / len(values), 1) if values else None
    return averages


def csv_response(kind: str, records: List[Dict[str, Any]], columns) -> Response:
    return Response(
        content=to_csv(records, columns),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(kind, utcnow_iso())}"'},
    )

# ---------------------- App ----------------------

def create_app(settings: Optional[Settings] = None, store: Optional[MongoStore] = None) -> FastAPI:
    settings = settings or get_settings()
    auth.check_secret_key(settings)
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.store is None
        if owned:
            app.state.store = MongoStore(settings.MONGODB_URI, settings.MONGODB_DATABASE)
        app.state.store.ensure_indexes()
        auth.seed_super_admin(app.state.store, settings)
        logger.info("Feedback Hub API ready (database %s)", settings.MONGODB_DATABASE)
        yield
        if owned:
            app.state.store.close()
            app.state.store = None

    app = FastAPI(title="Feedback Hub API", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    # Health
    @app.get("/api/health")
    def health():
        return {"ok": True}

    # Auth
    @app.post("/api/auth/login", response_model=LoginResponse)
    def login(body: LoginRequest, store: MongoStore = Depends(get_store), settings: Settings = Depends(get_app_settings)):
        return auth.login(store, settings, body.email, body.password)

    @app.get("/api/auth/me")
    def me(identity: Identity = Depends(require_auth)):
        return {"id": identity.id, "email": identity.email, "role": identity.role.value}

    # Users
    @app.post("/api/users", response_model=CreateUserResponse)
    def create_user(body: CreateUserRequest, _: Identity = Depends(require_super_admin), store: MongoStore = Depends(get_store)):
        inserted_id = auth.create_user(store, body.email, body.password)
        return CreateUserResponse(insertedId=inserted_id)

    @app.get("/api/users", response_model=List[UserListItem])
    def list_users(_: Identity = Depends(require_super_admin), store: MongoStore = Depends(get_store)):
        return [UserListItem.model_validate(u) for u in store.list_users()]

    # Feedback
    @app.post("/api/feedback", response_model=InsertedResponse)
    def submit_feedback(body: FeedbackSchema, store: MongoStore = Depends(get_store)):
        return InsertedResponse(insertedId=store.create_document(FEEDBACK, body))

    @app.get("/api/feedback")
    def list_feedback(_: Identity = Depends(require_auth), store: MongoStore = Depends(get_store)):
        return store.get_documents(FEEDBACK, limit=settings.LIST_LIMIT)

    @app.get("/api/feedback/stats", response_model=FeedbackStats)
    def feedback_stats(_: Identity = Depends(require_auth), store: MongoStore = Depends(get_store)):
        records = store.get_documents(FEEDBACK, limit=settings.LIST_LIMIT)
        return FeedbackStats(count=len(records), averages=average_ratings(records))

    @app.get("/api/feedback/export")
    def export_feedback(_: Identity = Depends(require_super_admin), store: MongoStore = Depends(get_store)):
        return csv_response("feedback", store.get_documents(FEEDBACK, limit=settings.LIST_LIMIT), FEEDBACK_COLUMNS)

    # Prompts
    @app.post("/api/prompts", response_model=InsertedResponse)
    def submit_prompt(body: PromptSchema, store: MongoStore = Depends(get_store)):
        return InsertedResponse(insertedId=store.create_document(PROMPTS, body))

    @app.get("/api/prompts")
    def list_prompts(_: Identity = Depends(require_auth), store: MongoStore = Depends(get_store)):
        return store.get_documents(PROMPTS, limit=settings.LIST_LIMIT)

    @app.get("/api/prompts/export")
    def export_prompts(_: Identity = Depends(require_super_admin), store: MongoStore = Depends(get_store)):
        return csv_response("prompts", store.get_documents(PROMPTS, limit=settings.LIST_LIMIT), PROMPT_COLUMNS)

    return app


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.SERVER_PORT)
