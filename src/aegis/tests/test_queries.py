# src/aegis/tests/test_queries.py
from __future__ import annotations

import sqlalchemy as sa

from aegis.db.models import Grievance, GrievanceStatus
from aegis.db.queries import apply_filters, clamp_offset, clamp_page, escape_like


def test_clamp_page_defaults_and_bounds():
    assert clamp_page(None, None, default_limit=20, max_limit=100) == (20, 0)
    assert clamp_page(3, 10, default_limit=20, max_limit=100) == (10, 20)
    assert clamp_page(0, 0, default_limit=20, max_limit=100) == (1, 0)
    assert clamp_page(-4, 1000, default_limit=20, max_limit=100) == (100, 0)


def test_clamp_offset():
    assert clamp_offset(None, None, default_limit=100, max_limit=500) == (100, 0)
    assert clamp_offset(9999, -3, default_limit=100, max_limit=500) == (500, 0)


def test_escape_like_neutralizes_wildcards():
    assert escape_like("50%_off") == "50\\%\\_off"
    assert escape_like("back\\slash") == "back\\\\slash"


def test_absent_filters_add_no_where_clause():
    stmt = apply_filters(sa.select(Grievance), equals={Grievance.status: None}, search=("   ", (Grievance.title,)))
    assert stmt.whereclause is None


def test_filters_are_bound_parameters():
    stmt = apply_filters(
        sa.select(Grievance),
        equals={Grievance.status: GrievanceStatus.SUBMITTED},
        search=("50%_off'; DROP TABLE users; --", (Grievance.title, Grievance.description)),
    )
    compiled = stmt.compile()
    sql = str(compiled)
    assert "DROP TABLE" not in sql
    assert "%50\\%\\_off'; DROP TABLE users; --%" in compiled.params.values()
    assert GrievanceStatus.SUBMITTED in compiled.params.values()
