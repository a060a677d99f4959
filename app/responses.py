"""JSON envelopes shared by every endpoint."""
from typing import Any

SUCCESS_MESSAGE = "Success"
FAIL_MESSAGE = "Fail"


def success(data: Any) -> dict:
    return {"message": SUCCESS_MESSAGE, "data": data}


def fail(data: Any) -> dict:
    return {"message": FAIL_MESSAGE, "data": data}
