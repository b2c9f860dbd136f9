"""Index layout of the auth tables."""

from __future__ import annotations

import pytest
from sqlalchemy import UniqueConstraint

from volunteer_auth.models import RefreshToken, User


@pytest.mark.parametrize("model", [User, RefreshToken])
def test_unique_columns_carry_no_second_index(model):
    table = model.__table__
    unique_sets = {
        tuple(c.name for c in constraint.columns)
        for constraint in table.constraints
        if isinstance(constraint, UniqueConstraint)
    }
    indexed_sets = {tuple(c.name for c in index.columns) for index in table.indexes}

    assert unique_sets
    assert not unique_sets & indexed_sets


def test_refresh_tokens_are_indexed_by_owner():
    names = {index.name for index in RefreshToken.__table__.indexes}
    assert names == {"ix_refresh_tokens_user_id"}
