from typing import Annotated, Optional
from fastapi import Depends, Request, HTTPException, status


def get_optional_operator_id(request: Request) -> Optional[int]:
    """Extract admin_user_id from request state set by OperatorContextMiddleware"""
    return getattr(request.state, "admin_user_id", None)


def get_operator_id(request: Request) -> int:
    """Same as get_optional_operator_id, but the header is mandatory"""
    admin_user_id = get_optional_operator_id(request)
    if admin_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Debes indicar el usuario operador en el encabezado X-Admin-User-ID"
        )
    return admin_user_id


operator_dependency = Annotated[int, Depends(get_operator_id)]
optional_operator_dependency = Annotated[Optional[int], Depends(get_optional_operator_id)]
