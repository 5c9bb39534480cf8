"""
Integration tests for Health Check Endpoints

Tests cover:
    - Liveness and readiness probes
    - Detailed health with and without a debrid provider
    - Provider failures reported as a degraded service
    - Health result caching
"""

import pytest
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tamilarr.config import Config
from tamilarr.database import get_db
from tamilarr.main import app
from tamilarr.models import Base, MediaIdentity, ReleaseCandidate
from tamilarr.api.stremio_routes import get_debrid_client
from tamilarr.services.exceptions import ProviderAPIError
from tamilarr.services.health_check_service import (
    HealthCheckService,
    HealthStatus,
    ServiceHealth,
    get_health_service,
)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def db_session(db_engine):
    SessionLocal = sessionmaker(bind=db_engine)
    db = SessionLocal()
    db.add_all([
        MediaIdentity(tmdb_id='100', imdb_id='tt0000100', media_type='series', title='Vilangu'),
        ReleaseCandidate(tmdb_id='100', season=1, episode=1, episode_end=999, infohash='ab' * 20),
        ReleaseCandidate(tmdb_id='100', season=1, episode=2, episode_end=2, infohash='cd' * 20),
    ])
    db.commit()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def fresh_health_cache():
    """The health service is a process-wide singleton with a result cache."""
    get_health_service().clear_cache()
    yield
    get_health_service().clear_cache()


@pytest.fixture
def provider():
    mock = AsyncMock()
    mock.get_user.return_value = {'username': 'viewer', 'type': 'premium', 'expiration': '2030-01-01T00:00:00.000Z'}
    return mock


def make_client(db_session, debrid=None):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_debrid_client] = lambda: debrid
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_overrides():
    yield
    app.dependency_overrides.clear()


# ============================================================================
# Probes
# ============================================================================

class TestProbes:

    def test_liveness(self, db_session):
        response = make_client(db_session).get('/health/live')

        assert response.status_code == 200
        assert response.json() == {'status': 'alive'}

    def test_readiness(self, db_session):
        response = make_client(db_session).get('/health/ready')

        assert response.status_code == 200
        assert response.json() == {'status': 'ready', 'database': 'connected'}

    def test_readiness_database_down(self, db_session):
        unhealthy = ServiceHealth(
            name='database',
            status=HealthStatus.UNHEALTHY,
            message='Database error: unable to open database file'
        )

        with patch.object(HealthCheckService, 'check_database', new=AsyncMock(return_value=unhealthy)):
            response = make_client(db_session).get('/health/ready')

        assert response.status_code == 503
        assert response.json() == {
            'status': 'not_ready',
            'reason': 'Database error: unable to open database file'
        }


# ============================================================================
# Detailed health
# ============================================================================

class TestDetailedHealth:

    def test_with_provider(self, db_session, provider):
        response = make_client(db_session, debrid=provider).get('/health/detailed')

        assert response.status_code == 200
        result = response.json()
        assert result['status'] == 'healthy'
        assert result['version'] == Config.APP_VERSION
        assert result['debrid_enabled'] is True
        assert result['trackers'] > 0
        assert result['rate_limit']['service'] == 'realdebrid'
        assert result['counts'] == {'identities': 1, 'releases': 2, 'snapshots': 0, 'locks': 0}

        debrid = result['services']['realdebrid']
        assert debrid['status'] == 'healthy'
        assert debrid['details'] == {'account_type': 'premium', 'expiration': '2030-01-01T00:00:00.000Z'}
        assert result['services']['database']['status'] == 'healthy'

    def test_without_provider(self, db_session):
        result = make_client(db_session).get('/health/detailed').json()

        assert result['status'] == 'healthy'
        assert result['debrid_enabled'] is False
        assert result['services']['realdebrid']['status'] == 'unknown'

    def test_provider_failure_degrades(self, db_session, provider):
        provider.get_user.side_effect = ProviderAPIError('bad_token', status_code=401)

        result = make_client(db_session, debrid=provider).get('/health/detailed').json()

        assert result['status'] == 'degraded'
        assert result['services']['realdebrid']['status'] == 'unhealthy'
        assert 'bad_token' in result['services']['realdebrid']['message']

    def test_clear_cache(self, db_session):
        response = make_client(db_session).post('/health/cache/clear')

        assert response.status_code == 200
        assert response.json()['status'] == 'success'


# ============================================================================
# Service
# ============================================================================

class TestHealthCheckService:

    @pytest.mark.asyncio
    async def test_database_result_cached(self, db_engine):
        service = HealthCheckService(cache_ttl_seconds=60)

        first = await service.check_database(db_engine)
        second = await service.check_database(db_engine)

        assert first.status == HealthStatus.HEALTHY
        assert second is first

    @pytest.mark.asyncio
    async def test_cache_expiry(self, db_engine):
        service = HealthCheckService(cache_ttl_seconds=0)

        first = await service.check_database(db_engine)
        second = await service.check_database(db_engine)

        assert second is not first

    @pytest.mark.asyncio
    async def test_debrid_not_configured(self):
        health = await HealthCheckService().check_debrid(None)

        assert health.status == HealthStatus.UNKNOWN
        assert health.to_dict()['message'] == 'Not configured'

    @pytest.mark.asyncio
    async def test_debrid_result_cached(self, provider):
        service = HealthCheckService()

        await service.check_debrid(provider)
        await service.check_debrid(provider)

        provider.get_user.assert_awaited_once()
