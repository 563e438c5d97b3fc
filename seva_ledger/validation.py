from typing import Mapping, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError

RequestT = TypeVar("RequestT", bound=BaseModel)

# Leading loc entries FastAPI adds to say where a value came from
REQUEST_SOURCES = ("body", "query", "path", "header", "cookie")


def first_error(exc) -> ValidationError:
    """Reduce a pydantic error report to its first offending field.

    Accepts pydantic's ``ValidationError`` or FastAPI's ``RequestValidationError``.
    """
    error = exc.errors()[0]
    loc = list(error.get("loc", ()))
    if loc and loc[0] in REQUEST_SOURCES:
        loc = loc[1:]
    field = ".".join(str(part) for part in loc) or None
    message = error.get("msg", "invalid value")
    return ValidationError(f"{field}: {message}" if field else message, field=field)


def parse_request(model: Type[RequestT], data: Union[RequestT, Mapping]) -> RequestT:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise first_error(e) from e
