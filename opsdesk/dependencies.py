from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from opsdesk.models import Account
from opsdesk.services.results import ErrorKind, OperationResult

_UNAUTHORIZED_KINDS = frozenset({ErrorKind.INVALID_CREDENTIALS})


def result_or_http(result: OperationResult) -> dict:
    if result:
        return result.to_record()
    if result.error == ErrorKind.NOT_FOUND:
        code = status.HTTP_404_NOT_FOUND
    elif result.error in _UNAUTHORIZED_KINDS:
        code = status.HTTP_401_UNAUTHORIZED
    else:
        code = status.HTTP_400_BAD_REQUEST
    raise HTTPException(status_code=code, detail=result.message)


def found_or_404(record, label: str):
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f'{label} not found')
    return record


def get_current_account(request: Request) -> Account:
    account = getattr(request.state, 'account', None)
    if account is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return account


def require_admin(account: Account = Depends(get_current_account)) -> Account:
    if not account.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    return account
