import os, sys, pytest
# Ensure the backend directory is on path so 'goldtouch' and 'tests' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from goldtouch import create_app, get_db
from goldtouch.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import goldtouch.models.audit  # noqa: F401
import goldtouch.models.client  # noqa: F401
import goldtouch.models.project  # noqa: F401
import goldtouch.models.invoice  # noqa: F401
import goldtouch.models.accounting  # noqa: F401
import goldtouch.models.hr  # noqa: F401
import goldtouch.models.notification  # noqa: F401
import goldtouch.models.approval  # noqa: F401
import goldtouch.models.attachment  # noqa: F401


@pytest.fixture(scope='session', autouse=True)
def app_instance(tmp_path_factory):
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({
        'TESTING': True,
        'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256',
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp('uploads')),
    })
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()
