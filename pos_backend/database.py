"""Database configuration and initialization."""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base

# Create SQLAlchemy base
Base = declarative_base()

# Global session and engine
engine = None
db_session = None


def _configure_sqlite(sqlite_engine):
    """Make SQLite writers serialize.

    pysqlite defers BEGIN until the first write and SQLite ignores
    SELECT ... FOR UPDATE, so two sales could both read the same stock level.
    Every transaction is opened with BEGIN IMMEDIATE instead, which takes the
    write lock up front.
    """

    @event.listens_for(sqlite_engine, 'connect')
    def _on_connect(dbapi_connection, connection_record):
        # Disable pysqlite's own transaction handling
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()

    @event.listens_for(sqlite_engine, 'begin')
    def _on_begin(conn):
        conn.exec_driver_sql('BEGIN IMMEDIATE')


def _build_engine(database_uri, echo=False):
    if database_uri.startswith('sqlite'):
        sqlite_engine = create_engine(
            database_uri,
            echo=echo,
            connect_args={'check_same_thread': False, 'timeout': 30},
        )
        _configure_sqlite(sqlite_engine)
        return sqlite_engine

    return create_engine(
        database_uri,
        echo=echo,
        pool_pre_ping=True,  # Enable connection health checks
        pool_size=10,
        max_overflow=20
    )


def init_db(app):
    """Initialize database connection."""
    global engine, db_session

    if engine is not None:
        dispose_db()

    engine = _build_engine(
        app.config['SQLALCHEMY_DATABASE_URI'],
        echo=app.config.get('SQLALCHEMY_ECHO', False),
    )

    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    )

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_all():
    """Create every table known to the models package."""
    import pos_backend.models  # noqa: F401  (registers mappers)
    Base.metadata.create_all(bind=engine)


def drop_all():
    """Drop every table (test helper)."""
    Base.metadata.drop_all(bind=engine)


def dispose_db():
    """Release pooled connections and the session registry."""
    global engine, db_session
    if db_session is not None:
        db_session.remove()
    if engine is not None:
        engine.dispose()


def get_session():
    """Get database session."""
    return db_session
