import pytest
from decimal import Decimal

from lojapdv import create_app
from lojapdv.database import get_session, create_schema, drop_schema
from lojapdv.models import Store, AppUser, Product, InventoryRecord, Customer, UserRole


@pytest.fixture(scope='function')
def app():
    """Application on a fresh in-memory SQLite database."""
    app = create_app('config.TestingConfig')
    # One app context for the whole test so the scoped session survives requests
    with app.app_context():
        create_schema()
        yield app
        get_session().remove()
        drop_schema()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for testing."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def store(session):
    """First test store."""
    store = Store(slug='loja-centro', name='Loja Centro', active=True)
    session.add(store)
    session.commit()
    return store


@pytest.fixture(scope='function')
def other_store(session):
    """Second store for isolation tests."""
    store = Store(slug='loja-bairro', name='Loja Bairro', active=True)
    session.add(store)
    session.commit()
    return store


@pytest.fixture(scope='function')
def owner(session, store):
    user = AppUser(email='dono@loja.com', full_name='Dono', store_id=store.id, role=UserRole.OWNER.value)
    user.set_password('senha123')
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(session):
    user = AppUser(email='admin@pdv.com', full_name='Admin', role=UserRole.ADMIN.value)
    user.set_password('senha123')
    session.add(user)
    session.commit()
    return user


def make_product(session, store, code, description, unit_price, stock=None, brand='Outros',
                 supplier='Distribuidora', kind='Geral', min_stock=None):
    """Product plus its inventory record (when stock is given)."""
    product = Product(
        store_id=store.id,
        code=code,
        kind=kind,
        description=description,
        brand=brand,
        supplier=supplier,
        unit_price=Decimal(str(unit_price)),
        min_stock=min_stock,
    )
    session.add(product)
    session.flush()
    if stock is not None:
        session.add(InventoryRecord(
            store_id=store.id,
            product_id=product.id,
            quantity=Decimal(str(stock)),
            unit='un',
        ))
    session.commit()
    return product


@pytest.fixture(scope='function')
def product_factory(session):
    def _make(store, code, description, unit_price, **kwargs):
        return make_product(session, store, code, description, unit_price, **kwargs)
    return _make


@pytest.fixture(scope='function')
def ration(session, store):
    """Product 1*: 89,90 with 7 on hand, minimum 5."""
    return make_product(session, store, 1, 'Ração Golden 15kg', '89.90', stock=7,
                        brand='Golden', supplier='PremieR', kind='Ração', min_stock=5)


@pytest.fixture(scope='function')
def collar(session, store):
    """Product 2*: 25,00 with 20 on hand, no minimum."""
    return make_product(session, store, 2, 'Coleira Nylon', '25.00', stock=20, kind='Acessório')


@pytest.fixture(scope='function')
def customer(session, store):
    customer = Customer(store_id=store.id, name='Maria Souza', phone='(11) 98765-4321', city='São Paulo')
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def authenticated_client(client, owner):
    """Client logged in as the store owner."""
    with client.session_transaction() as sess:
        sess['user_id'] = owner.id
    return client


@pytest.fixture(scope='function')
def admin_client(client, admin_user):
    with client.session_transaction() as sess:
        sess['user_id'] = admin_user.id
    return client
