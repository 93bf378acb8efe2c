"""Shared fixtures for the back-office reconciliation tests."""

import pytest

from backoffice_recon.models import TenantContext
from backoffice_recon.storage import SqlStore


@pytest.fixture
def store():
    return SqlStore("sqlite:///:memory:")


@pytest.fixture
def tenant():
    return TenantContext("user-1")


@pytest.fixture
def other_tenant():
    return TenantContext("user-2")


@pytest.fixture
def anonymous():
    return TenantContext.anonymous()
