from fastapi import Request
from pydantic import ValidationError

from erms.schemas.views import FormState


async def read_form(request: Request) -> dict:
    """Posted form fields; repeated keys (checkbox groups) become lists."""
    form = await request.form()
    data = {}
    for key in form.keys():
        values = form.getlist(key)
        data[key] = values if len(values) > 1 else values[0]
    return data


def validate_form(model_cls, data: dict):
    """Return ``(model, FormState)``; the model is None when validation failed."""
    try:
        return model_cls.model_validate(data), FormState()
    except ValidationError as exc:
        return None, FormState.from_validation_error(exc)


def optional_int(value) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def is_local_url(url: str | None) -> bool:
    return bool(url) and url.startswith("/") and not url.startswith("//") and not url.startswith("/\\")
