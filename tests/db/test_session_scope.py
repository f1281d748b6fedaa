"""Module-level engine setup and the session_scope() transaction boundary."""

import pytest

from bursary_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    is_postgres,
    reset_engine,
    session_scope,
)
from bursary_kernel.domain.dtos import FinanceAccountType
from bursary_kernel.exceptions import DuplicateCodeError
from bursary_kernel.services import AccountService
from tests.conftest import MAKER


@pytest.fixture
def module_engine():
    reset_engine()
    engine = init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield engine
    reset_engine()


def _account_codes():
    session = get_session()
    try:
        return [a.code for a in AccountService(session).list_accounts()]
    finally:
        session.close()


def test_engine_required_before_use():
    reset_engine()

    with pytest.raises(RuntimeError):
        get_engine()
    with pytest.raises(RuntimeError):
        get_session()
    assert is_postgres() is False


def test_scope_commits_on_success(module_engine):
    with session_scope() as session:
        AccountService(session).create_account("4100", "SPP", FinanceAccountType.INCOME, MAKER)

    assert _account_codes() == ["4100"]
    assert is_postgres() is False


def test_scope_rolls_back_on_error(module_engine):
    with session_scope() as session:
        AccountService(session).create_account("4100", "SPP", FinanceAccountType.INCOME, MAKER)

    with pytest.raises(DuplicateCodeError):
        with session_scope() as session:
            accounts = AccountService(session)
            accounts.create_account("5100", "Refund", FinanceAccountType.EXPENSE, MAKER)
            accounts.create_account("4100", "SPP lagi", FinanceAccountType.INCOME, MAKER)

    assert _account_codes() == ["4100"]
