"""
In-memory stores listing with opaque continuation tokens.

Serves the same ``/stores`` shape as the benchmarked backends so the harness
can be dry-run locally:

    uvicorn deep_pagination.fake_stores:app --port 8081
"""

import argparse
import base64
import binascii
import json
import threading
import uuid
from datetime import datetime, timezone
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from deep_pagination.config import env_int

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


class CreateStoreReq(BaseModel):
    name: str = Field(min_length=1)


class Store(BaseModel):
    id: str
    name: str
    created_at: datetime
    updated_at: datetime


class ListStoresResp(BaseModel):
    stores: List[Store]
    continuation_token: str = ""


def encode_token(seq: int, store_id: str) -> str:
    raw = json.dumps({"s": seq, "m": store_id}, separators=(",", ":")).encode()
    return base64.b64encode(raw).decode()


def decode_token(token: str):
    try:
        cursor = json.loads(base64.b64decode(token, validate=True))
        seq, store_id = int(cursor["s"]), str(cursor["m"])
    except (binascii.Error, ValueError, TypeError, KeyError):
        raise HTTPException(status_code=400, detail="Invalid continuation_token") from None
    if seq < 0:
        raise HTTPException(status_code=400, detail="Invalid continuation_token")
    return seq, store_id


class StoreCatalog:
    """Stores ordered by creation sequence; appends and reads under one lock."""

    def __init__(self):
        self.lock = threading.Lock()
        self._stores: List[Store] = []

    def create(self, name: str) -> Store:
        now = datetime.now(timezone.utc)
        store = Store(id=uuid.uuid4().hex, name=name, created_at=now, updated_at=now)
        with self.lock:
            self._stores.append(store)
        return store

    def page(self, page_size: int, after: Optional[int] = None):
        start = 0 if after is None else after + 1
        with self.lock:
            stores = self._stores[start:start + page_size]
            has_more = start + page_size < len(self._stores)
        token = encode_token(start + len(stores) - 1, stores[-1].id) if has_more else ""
        return stores, token

    def __len__(self):
        with self.lock:
            return len(self._stores)


def create_app(preseed: int = 0) -> FastAPI:
    app = FastAPI(title="Fake Stores Service", version="1.0.0")
    catalog = StoreCatalog()
    for i in range(preseed):
        catalog.create(f"store-fake-{i}")
    app.state.catalog = catalog

    @app.get("/health")
    def health():
        return {"ok": True, "stores": len(catalog)}

    @app.post("/stores", status_code=201, response_model=Store)
    def create_store(req: CreateStoreReq):
        return catalog.create(req.name)

    @app.get("/stores", response_model=ListStoresResp)
    def list_stores(
        page_size: int = Query(DEFAULT_PAGE_SIZE),
        continuation_token: str = Query(""),
    ):
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise HTTPException(status_code=400, detail=f"page_size must be between 1 and {MAX_PAGE_SIZE}")
        after = None
        if continuation_token:
            after, _ = decode_token(continuation_token)
        stores, token = catalog.page(page_size, after)
        return ListStoresResp(stores=stores, continuation_token=token)

    return app


app = create_app(env_int("FAKE_STORES_PRESEED", 0))


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--bind", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8081)
    parser.add_argument("--preseed", type=int, default=env_int("FAKE_STORES_PRESEED", 0))
    args = parser.parse_args()
    uvicorn.run(create_app(args.preseed), host=args.bind, port=args.port)


if __name__ == "__main__":
    main()
