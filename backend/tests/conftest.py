import os, sys, pytest
# Ensure backend directory is on path so 'batch_installer' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from batch_installer import create_app, get_db
from batch_installer.models.authz import Base, Permission  # ensure Permission model referenced
# Import all model modules to ensure tables are registered before create_all
import batch_installer.models.audit  # noqa: F401
import batch_installer.models.repository  # noqa: F401
import batch_installer.models.installed_plugin  # noqa: F401

@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app()
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app

@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()

@pytest.fixture()
def session(app_instance):
    """Shared scoped session; rolled back after each test so failed flushes don't leak."""
    s = get_db()
    yield s
    s.rollback()
