from pydantic import BaseModel
from starlette import status
from starlette.responses import JSONResponse


class APIError(BaseModel):
    detail: str


def bad_request(detail: str) -> JSONResponse:
    return JSONResponse(
        APIError(detail=detail).model_dump(mode="json"),
        status_code=status.HTTP_400_BAD_REQUEST,
    )
