import pytest
from decimal import Decimal
import uuid

from pos_backend import create_app
from pos_backend.database import create_all, drop_all, dispose_db, get_session
from pos_backend.models import Product, Customer, Supplier


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application instance on a throwaway SQLite file."""
    db_file = tmp_path / 'pos_test.db'
    app = create_app('config.TestingConfig', {
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_file}',
    })
    create_all()

    ctx = app.app_context()
    ctx.push()
    yield app
    ctx.pop()

    drop_all()
    dispose_db()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Scoped database session for the test thread."""
    session = get_session()
    yield session
    session.rollback()
    session.remove()


def _make_product(session, name, quantity, sell_price, **kwargs):
    product = Product(
        id=kwargs.pop('id', f'prod-{uuid.uuid4().hex[:8]}'),
        name=name,
        category=kwargs.pop('category', 'General'),
        quantity=quantity,
        buy_price=kwargs.pop('buy_price', Decimal('1.00')),
        sell_price=Decimal(str(sell_price)),
        low_stock_threshold=kwargs.pop('low_stock_threshold', 5),
        **kwargs
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def make_product(session):
    """Factory: make_product(name, quantity, sell_price, **columns)."""
    def factory(name, quantity, sell_price, **kwargs):
        return _make_product(session, name, quantity, sell_price, **kwargs)
    return factory


@pytest.fixture(scope='function')
def product_a(session):
    """Product priced 10.00 with 20 units."""
    return _make_product(session, 'Rice 1kg', 20, '10.00', id='prod-a')


@pytest.fixture(scope='function')
def product_b(session):
    """Product priced 5.00 with 20 units."""
    return _make_product(session, 'Sugar 1kg', 20, '5.00', id='prod-b')


@pytest.fixture(scope='function')
def customer(session):
    customer = Customer(id='cust-1', name='Amina Yusuf', phone='0800000000')
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def supplier(session):
    supplier = Supplier(id='supp-1', name='Lagos Grains Ltd', phone='0700000000')
    session.add(supplier)
    session.commit()
    return supplier
