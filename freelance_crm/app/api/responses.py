"""Response envelope helpers: ``{"success": true, "data": ..., "meta": ...}``."""

from typing import Any, Iterable, Optional

from pydantic import BaseModel


def success(data: Any, meta: Optional[dict] = None) -> dict:
    body = {"success": True, "data": data}
    if meta is not None:
        body["meta"] = meta
    return body


def serialize(schema: type[BaseModel], obj) -> dict:
    return schema.model_validate(obj).model_dump(mode="json")


def serialize_list(schema: type[BaseModel], objs: Iterable) -> list:
    return [serialize(schema, obj) for obj in objs]


def listing(schema: type[BaseModel], objs: list) -> dict:
    return success(serialize_list(schema, objs), meta={"total": len(objs)})


def error_body(error: dict) -> dict:
    return {"success": False, "error": error}
