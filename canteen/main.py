import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, FastAPI, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db import SessionLocal, engine, init_db
from . import crud, schemas
from . import config
from .auth import get_current_user_id, require_admin
from .errors import CanteenError, Internal, NotFound
from .mailer import DegradedMailer, Mailer, build_mailer
from .utils import utcnow
from .verification import RequestVerificationWorkflow, VerificationWorkflow

logging.basicConfig(
    level=config.get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

init_db(engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = config.get_settings()
    if isinstance(build_mailer(settings), DegradedMailer):
        logger.warning("Email transport not configured (MAIL_HOST unset); PINs are returned to the caller")
    if not settings.admin_key:
        logger.warning("ADMIN_KEY not set; every privileged route will answer 403")
    yield


app = FastAPI(title="Cans & Teens Canteen API", lifespan=lifespan)

# Authorization travels in headers (no cookies), so credentials stay off
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(config.get_settings().cors_origins) or ["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------- Dependencies --------------------

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock():
    return utcnow


def get_mailer() -> Mailer:
    return build_mailer(config.get_settings())


def get_verification(db: Session = Depends(get_db), mailer: Mailer = Depends(get_mailer), clock=Depends(get_clock)):
    return VerificationWorkflow(db, mailer, clock)


def get_request_verification(db: Session = Depends(get_db), mailer: Mailer = Depends(get_mailer), clock=Depends(get_clock)):
    return RequestVerificationWorkflow(db, mailer, clock)


# -------------------- Error envelope --------------------

@app.exception_handler(CanteenError)
async def canteen_error_handler(request: Request, exc: CanteenError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        where = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        problems.append(f"{where}: {err.get('msg')}" if where else str(err.get("msg")))
    return JSONResponse(status_code=400, content={"error": "; ".join(problems) or "Invalid request"})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("database failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": Internal().message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": Internal().message})


@app.get("/health")
async def health():
    return {"status": "ok", "message": "Cans & Teens backend is running"}


# -------------------- Auth --------------------

@app.post("/auth/request-pin", response_model=schemas.PinIssued, response_model_exclude_none=True)
def request_pin(payload: schemas.PinRequest, workflow: VerificationWorkflow = Depends(get_verification)):
    return workflow.request_pin(payload.email, payload.name, payload.roll_number, payload.dob)


@app.post("/auth/verify-pin", response_model=schemas.PinVerified)
def verify_pin(payload: schemas.PinVerify, workflow: VerificationWorkflow = Depends(get_verification)):
    return workflow.verify_pin(payload.email, payload.pin)


@app.get("/auth/me", response_model=schemas.UserRead)
def me(user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    user = crud.get_user(db, user_id)
    if not user:
        raise NotFound("User not found")
    return user


@app.post("/auth/verification-requests", response_model=schemas.RequestIssued, response_model_exclude_none=True, status_code=201)
def create_verification_request(payload: schemas.PinRequest, workflow: RequestVerificationWorkflow = Depends(get_request_verification)):
    return workflow.create_request(payload.email, payload.name, payload.roll_number, payload.dob)


@app.post("/auth/verification-requests/verify", response_model=schemas.RequestVerified)
def verify_verification_request(payload: schemas.RequestVerify, workflow: RequestVerificationWorkflow = Depends(get_request_verification)):
    return workflow.verify_request(payload.request_id, payload.pin)


# -------------------- Menu --------------------

# must be registered before /menu/{item_id}
@app.get("/menu/categories/list", response_model=List[str])
def menu_categories(db: Session = Depends(get_db)):
    return crud.list_categories(db)


@app.get("/menu", response_model=List[schemas.MenuItemRead])
def menu(category: Optional[str] = Query(default=None), available: Optional[bool] = Query(default=None), db: Session = Depends(get_db)):
    # only available items unless the caller explicitly asks for available=false
    return crud.list_menu(db, category=category, available_only=available is not False)


@app.get("/menu/{item_id}", response_model=schemas.MenuItemRead)
def menu_item(item_id: int, db: Session = Depends(get_db)):
    return crud.get_menu_item(db, item_id)


# -------------------- Orders --------------------

@app.post("/orders", response_model=schemas.OrderEnvelope, status_code=201)
def create_order(order: schemas.OrderCreate, db: Session = Depends(get_db), clock=Depends(get_clock)):
    created = crud.create_order(db, order, clock())
    return {"message": "Order placed successfully", "order": created}


@app.get("/orders", response_model=List[schemas.OrderRead], dependencies=[Depends(require_admin)])
def all_orders(db: Session = Depends(get_db)):
    return crud.list_orders(db)


# must be registered before /orders/{order_id}
@app.get("/orders/email/{email}", response_model=List[schemas.OrderRead])
def orders_for_email(email: str, db: Session = Depends(get_db)):
    return crud.list_orders_by_email(db, email)


@app.get("/orders/{order_id}", response_model=schemas.OrderRead)
def order_detail(order_id: str, db: Session = Depends(get_db)):
    return crud.get_order(db, order_id)


@app.patch("/orders/{order_id}/status", response_model=schemas.OrderEnvelope, dependencies=[Depends(require_admin)])
def update_order_status(order_id: str, payload: schemas.StatusUpdate, db: Session = Depends(get_db), clock=Depends(get_clock)):
    order = crud.update_order_status(db, order_id, payload.status, clock())
    return {"message": "Order status updated", "order": order}


# -------------------- Admin --------------------

admin = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


@admin.get("/analytics", response_model=schemas.Analytics)
def analytics(db: Session = Depends(get_db)):
    return crud.compute_analytics(db)


@admin.get("/menu", response_model=List[schemas.MenuItemRead])
def admin_menu(db: Session = Depends(get_db)):
    return crud.list_all_menu_items(db)


@admin.post("/menu", response_model=schemas.MenuItemRead, status_code=201)
def admin_create_menu_item(item: schemas.MenuItemCreate, db: Session = Depends(get_db), clock=Depends(get_clock)):
    return crud.create_menu_item(db, item, clock())


@admin.patch("/menu/{item_id}", response_model=schemas.MenuItemRead)
def admin_update_menu_item(item_id: int, changes: schemas.MenuItemUpdate, db: Session = Depends(get_db), clock=Depends(get_clock)):
    return crud.update_menu_item(db, item_id, changes, clock())


@admin.delete("/menu/{item_id}", response_model=schemas.MenuItemDeleted)
def admin_delete_menu_item(item_id: int, db: Session = Depends(get_db)):
    deleted = crud.delete_menu_item(db, item_id)
    return {"message": "Menu item deleted", "id": deleted}


@admin.get("/orders", response_model=List[schemas.OrderRead])
def admin_orders(status: Optional[str] = Query(default=None), email: Optional[str] = Query(default=None), db: Session = Depends(get_db)):
    return crud.list_orders(db, status=status, email=email)


app.include_router(admin)


if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
