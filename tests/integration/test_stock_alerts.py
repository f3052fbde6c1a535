"""
Integration tests for the stock advisory and manual stock changes.
"""

import pytest
from datetime import date, timedelta

from pos_backend.exceptions import InvalidItemError, ProductNotFoundError
from pos_backend.models import Product, StockMove, StockMoveType
from pos_backend.services.inventory_service import adjust_stock, get_stock_alerts, receive_stock

TODAY = date(2026, 3, 1)


def _ids(entries):
    return [entry['id'] for entry in entries]


class TestStockAlerts:

    def test_low_and_out_of_stock(self, session, make_product):
        make_product('Plenty', 50, '1.00', id='prod-plenty')
        make_product('At Threshold', 5, '1.00', id='prod-five')
        make_product('Custom Threshold', 8, '1.00', id='prod-eight', low_stock_threshold=10)
        make_product('Empty', 0, '1.00', id='prod-empty')

        alerts = get_stock_alerts(session, today=TODAY)

        assert _ids(alerts['lowStock']) == ['prod-empty', 'prod-five', 'prod-eight']
        assert _ids(alerts['outOfStock']) == ['prod-empty']

    def test_near_expiry_window(self, session, make_product):
        make_product('Expired', 10, '1.00', id='prod-expired', expiry_date=TODAY)
        make_product('Tomorrow', 10, '1.00', id='prod-tomorrow', expiry_date=TODAY + timedelta(days=1))
        make_product('Edge', 10, '1.00', id='prod-edge', expiry_date=TODAY + timedelta(days=30))
        make_product('Later', 10, '1.00', id='prod-later', expiry_date=TODAY + timedelta(days=31))

        alerts = get_stock_alerts(session, horizon_days=30, today=TODAY)

        assert _ids(alerts['nearExpiry']) == ['prod-tomorrow', 'prod-edge']
        assert alerts['nearExpiry'][0]['daysUntilExpiry'] == 1

    def test_custom_horizon(self, session, make_product):
        make_product('Week', 10, '1.00', id='prod-week', expiry_date=TODAY + timedelta(days=7))

        assert _ids(get_stock_alerts(session, horizon_days=3, today=TODAY)['nearExpiry']) == []
        assert _ids(get_stock_alerts(session, horizon_days=7, today=TODAY)['nearExpiry']) == ['prod-week']


class TestStockChanges:

    def test_adjust_sets_absolute_quantity(self, session, product_a):
        adjust_stock(session, 'prod-a', 7, notes='Stock take')

        session.expire_all()
        assert session.get(Product, 'prod-a').quantity == 7
        move = session.query(StockMove).filter_by(product_id='prod-a').one()
        assert move.move_type == StockMoveType.ADJUSTMENT
        assert move.qty_delta == -13

    @pytest.mark.parametrize('value', [-1, 2.5, 'many', True])
    def test_adjust_rejects_bad_quantity(self, session, product_a, value):
        with pytest.raises(InvalidItemError):
            adjust_stock(session, 'prod-a', value)

    def test_receive_adds_units(self, session, product_a):
        receive_stock(session, 'prod-a', 5, reference='PO-17')

        session.expire_all()
        assert session.get(Product, 'prod-a').quantity == 25
        move = session.query(StockMove).filter_by(product_id='prod-a').one()
        assert move.move_type == StockMoveType.RECEIPT
        assert move.reference_id == 'PO-17'

    def test_unknown_product(self, session):
        with pytest.raises(ProductNotFoundError):
            receive_stock(session, 'prod-missing', 1)
