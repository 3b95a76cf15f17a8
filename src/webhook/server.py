from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status

from src.common.errors import DecodeError
from src.policy.table import PolicyStore

from .config import ServerOptions
from .models import AdmissionReview
from .review import decode, encode, error_response, review_mutation

logger = logging.getLogger(__name__)

EXPECTED_CONTENT_TYPE = "application/json"


@lru_cache()
def get_options() -> ServerOptions:
    return ServerOptions.from_env()


@lru_cache()
def get_policy_store() -> PolicyStore:
    return PolicyStore(get_options().annotation_cfg_file)


async def read_review_body(request: Request) -> bytes:
    body = await request.body()
    if not body:
        logger.error("empty body")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="empty body")

    content_type = request.headers.get("content-type", "")
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type != EXPECTED_CONTENT_TYPE:
        logger.error("Content-Type=%s, expect %s", content_type, EXPECTED_CONTENT_TYPE)
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"invalid Content-Type, expect `{EXPECTED_CONTENT_TYPE}`",
        )
    return body


def _review_response(review: AdmissionReview) -> Response:
    return Response(content=encode(review), media_type=EXPECTED_CONTENT_TYPE)


def create_app(
    options: Optional[ServerOptions] = None,
    store: Optional[PolicyStore] = None,
) -> FastAPI:
    app = FastAPI(
        title="Ingress Annotation Defaults Webhook",
        description="Mutating admission webhook that applies per-Ingress default annotations.",
        version="0.1.0",
    )
    if options is not None:
        app.dependency_overrides[get_options] = lambda: options
    if store is not None:
        app.dependency_overrides[get_policy_store] = lambda: store

    @app.post("/mutate")
    async def mutate_review(
        request: Request,
        options: ServerOptions = Depends(get_options),
        store: PolicyStore = Depends(get_policy_store),
    ) -> Response:
        body = await read_review_body(request)
        review = review_mutation(
            body,
            store.current(),
            resource_kind=options.resource_kind,
            excluded_namespaces=options.excluded_namespaces,
            stamp_status=options.stamp_status,
        )
        logger.info("Ready to write response ...")
        return _review_response(review)

    @app.post("/validate")
    async def validate_review(request: Request) -> Response:
        body = await read_review_body(request)
        try:
            decode(body)
        except DecodeError as exc:
            logger.error("Can't decode body: %s", exc)
            return _review_response(AdmissionReview(response=error_response(str(exc))))
        logger.error("Not set up to do validation")
        return Response(content=b"{}", media_type=EXPECTED_CONTENT_TYPE)

    @app.get("/healthz")
    def healthz(store: PolicyStore = Depends(get_policy_store)) -> Dict[str, Any]:
        return {"status": "ok", "policies": len(store.current())}

    return app


app = create_app()


__all__ = [
    "app",
    "create_app",
    "get_options",
    "get_policy_store",
    "read_review_body",
]
