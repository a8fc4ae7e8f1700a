# storefront/delivery/api/deps.py
from fastapi import HTTPException, Request, status


def _service(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is not ready. Please try again in a moment.",
        )
    return service


def get_backend(request: Request):
    return _service(request, "backend")


def get_bootstrap(request: Request):
    return _service(request, "bootstrap")


def get_reconciler(request: Request):
    return _service(request, "reconciler")


def get_registry(request: Request):
    return _service(request, "registry")


def get_payments(request: Request):
    return _service(request, "payments")
