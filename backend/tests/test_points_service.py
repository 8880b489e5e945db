# Overview: Pytest coverage for staff points and the quarterly reset.

from datetime import datetime

import pytest

from qrdisplay.errors import NotFoundError, ValidationError
from qrdisplay.models import PointType
from qrdisplay.services import points_service
from qrdisplay.services.concurrency import unit_of_work


def _award(staff_id, amount, now):
    with unit_of_work("test_award"):
        return points_service.award_points(staff_id, amount, "test", point_type=PointType.SAMPLE, now=now)


class TestPointValues:

    @pytest.mark.parametrize("cents, online, instore", [
        (0, 0, 0),
        (99, 0, 1),
        (100, 1, 2),
        (2599, 25, 51),
        (4999, 49, 99),
    ])
    def test_per_dollar_floor(self, cents, online, instore):
        assert points_service.online_sale_points(cents) == online
        assert points_service.instore_sale_points(cents) == instore


class TestAwardPoints:

    def test_quarterly_points_reset_in_new_quarter(self, db_session, staff):
        _award(staff.id, 5, datetime(2025, 2, 10))
        _award(staff.id, 5, datetime(2025, 3, 31, 23, 59))

        member = points_service.get_staff_member(staff.id)
        assert member.quarterly_points == 10
        assert member.total_points == 10

        txn = _award(staff.id, 7, datetime(2025, 4, 1))
        assert txn.quarter == "2025-Q2"

        member = points_service.get_staff_member(staff.id)
        assert member.quarterly_points == 7
        assert member.total_points == 17

    def test_inactive_staff_rejected(self, db_session, staff):
        member = points_service.get_staff_member(staff.id)
        member.is_active = False
        db_session.commit()

        with pytest.raises(ValidationError):
            _award(staff.id, 5, datetime(2025, 1, 1))

    def test_unknown_staff(self, db_session):
        with pytest.raises(NotFoundError):
            _award(99999, 5, datetime(2025, 1, 1))

    def test_manual_adjustment(self, db_session, staff):
        points_service.adjust_points(staff.id, 12, "Leaderboard bonus")
        points_service.adjust_points(staff.id, -2, "Correction")

        member = points_service.get_staff_member(staff.id)
        assert member.total_points == 10

        txns = points_service.list_point_transactions(staff.id)
        assert {t.point_type for t in txns} == {PointType.MANUAL_ADJUSTMENT}
        assert len(txns) == 2

        with pytest.raises(ValidationError):
            points_service.adjust_points(staff.id, 0, "Nothing")
