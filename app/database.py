"""Database configuration and initialization."""
from sqlalchemy import create_engine, text, BigInteger, Integer, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base

# Create SQLAlchemy base
Base = declarative_base()

# SQLite only autoincrements INTEGER primary keys
BigIntegerId = BigInteger().with_variant(Integer, 'sqlite')

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), 'postgresql')

# Global session and engine
engine = None
db_session = None


def init_db(app):
    """Initialize database connection."""
    global engine, db_session

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    engine_options = {}
    if not database_uri.startswith('sqlite'):
        engine_options.update(pool_size=10, max_overflow=20)

    engine = create_engine(
        database_uri,
        echo=app.config.get('SQLALCHEMY_ECHO', False),
        pool_pre_ping=True,  # Enable connection health checks
        **engine_options
    )

    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    )

    Base.query = db_session.query_property()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_schema():
    """Create all tables (development and tests; production uses SQL migrations)."""
    # Import models so they are registered on Base.metadata
    import app.models  # noqa: F401
    Base.metadata.create_all(bind=engine)


def drop_schema():
    """Drop all tables."""
    import app.models  # noqa: F401
    Base.metadata.drop_all(bind=engine)


def ping():
    """Run a trivial query against the database."""
    row = db_session.execute(text("SELECT 1 as health_check")).fetchone()
    return bool(row and row[0] == 1)


def get_session():
    """Get database session."""
    return db_session
