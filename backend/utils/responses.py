from fastapi.responses import JSONResponse


def success_response(data=None, message="OK", status=200):
    return JSONResponse(
        status_code=status,
        content={
            "ok": True,
            "data": {} if data is None else data,
            "error": None,
            "message": message,
        }
    )


def error_response(error_code, status=400, message="An error occurred", data=None):
    return JSONResponse(
        status_code=status,
        content={
            "ok": False,
            "data": {} if data is None else data,
            "error": error_code,
            "message": message,
        }
    )


def locked_response(status_check: dict):
    """402 for shops whose subscription does not allow access."""
    return error_response(
        "subscription_locked",
        status=402,
        message="Subscription required. Upgrade to regain access.",
        data=status_check,
    )
