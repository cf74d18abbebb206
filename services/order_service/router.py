"""
Order lifecycle endpoints.

ALL endpoints except the health check require the X-Internal-API-Key header;
the APIRouter-level dependency applies it without repeating it per route.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from shared.config.database import (
    AsyncSessionLocal,
    FIRESTORE_PROJECT_ID,
    STORE_BACKEND,
    STRICT_TRANSITIONS,
)
from shared.security.dependencies import verify_internal_api_key

from .exceptions import (
    InvalidTransitionError,
    OrderLifecycleError,
    OrderNotFoundError,
    PartialCompletionError,
    WriteFailureError,
)
from .repository import DocumentStore, SqlDocumentStore
from .schemas import (
    CancelRequest,
    OrderCreate,
    OrderResponse,
    StatusHistoryEntry,
    StatusUpdate,
    TransitionResponse,
)
from .service import OrderLifecycleService

router = APIRouter(dependencies=[Depends(verify_internal_api_key)])
public_router = APIRouter()  # For any public endpoints (e.g. health check)

_store: DocumentStore | None = None


def get_store() -> DocumentStore:
    global _store
    if _store is None:
        if STORE_BACKEND == "firestore":
            from .firestore_store import FirestoreDocumentStore
            _store = FirestoreDocumentStore.from_project(FIRESTORE_PROJECT_ID)
        else:
            _store = SqlDocumentStore(AsyncSessionLocal)
    return _store


def get_lifecycle_service(store: DocumentStore = Depends(get_store)) -> OrderLifecycleService:
    return OrderLifecycleService(store, strict_transitions=STRICT_TRANSITIONS)


def _to_http(e: OrderLifecycleError) -> HTTPException:
    if isinstance(e, OrderNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, InvalidTransitionError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, PartialCompletionError):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    elif isinstance(e, WriteFailureError):
        # Nothing was applied, safe to retry
        code = status.HTTP_502_BAD_GATEWAY
    else:
        # Read failures, nothing was written
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    return HTTPException(
        status_code=code,
        detail={
            "message": str(e),
            "stage": e.stage,
            "completed": list(e.completed),
            "retryable": not isinstance(e, (PartialCompletionError, InvalidTransitionError)),
        },
    )


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "order", "status": "running"}


@router.post("/", response_model=OrderResponse, status_code=201)
async def create_order(
    data: OrderCreate, service: OrderLifecycleService = Depends(get_lifecycle_service)
):
    try:
        return await service.create_order(data)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except OrderLifecycleError as e:
        raise _to_http(e)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, service: OrderLifecycleService = Depends(get_lifecycle_service)):
    try:
        return await service.get_order(order_id)
    except OrderLifecycleError as e:
        raise _to_http(e)


@router.get("/{order_id}/history", response_model=list[StatusHistoryEntry])
async def get_history(order_id: str, service: OrderLifecycleService = Depends(get_lifecycle_service)):
    try:
        return await service.history(order_id)
    except OrderLifecycleError as e:
        raise _to_http(e)


@router.patch("/{order_id}/status", response_model=TransitionResponse)
async def update_status(
    order_id: str,
    update: StatusUpdate,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    try:
        return await service.update_status(order_id, update.status, update.notes)
    except OrderLifecycleError as e:
        raise _to_http(e)


@router.patch("/{order_id}/cancel", response_model=TransitionResponse)
async def cancel_order(
    order_id: str,
    request: CancelRequest,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    try:
        return await service.cancel_order(order_id, request.reason)
    except OrderLifecycleError as e:
        raise _to_http(e)
