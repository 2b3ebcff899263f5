"""
Shared fixtures: a fresh file-backed SQLite database per test and a small
festival with two colleges, three event types and their registrations.
"""

from types import SimpleNamespace

import pytest

from festival.config import Config, resolve_zone
from festival.database.database import Database
from festival.services.leaderboard import LeaderboardService
from festival.services.reconciliation import ScoreReconciliationService
from festival.services.registry import RegistryService
from festival.services.result_queries import ResultQueryService
from festival.services.results import ResultService


@pytest.fixture(scope="session", autouse=True)
def log_dir(tmp_path_factory):
    original = Config.LOG_DIR
    Config.LOG_DIR = str(tmp_path_factory.mktemp("logs"))
    yield Config.LOG_DIR
    Config.LOG_DIR = original


@pytest.fixture
async def db(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'festival_test.db'}", zone=resolve_zone('c'))
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def stored(db):
    """Read a row back through a fresh session."""
    async def _stored(model, ident):
        async with db.transaction() as session:
            return await session.get(model, ident)
    return _stored


@pytest.fixture
def leaderboard_service(db):
    return LeaderboardService(db.session_factory, top_scorer_limit=10)


@pytest.fixture
async def result_service(db, leaderboard_service):
    service = ResultService(
        db.session_factory,
        leaderboard_service=leaderboard_service,
        refresh_in_background=False
    )
    yield service
    await service.cleanup()


@pytest.fixture
def query_service(db, leaderboard_service):
    return ResultQueryService(db.session_factory, leaderboard_service)


@pytest.fixture
def registry(db):
    return RegistryService(db.session_factory, zone=resolve_zone('c'))


@pytest.fixture
def reconciliation(db):
    return ScoreReconciliationService(db.session_factory)


@pytest.fixture
async def fest(registry):
    """
    Alpha College: Anu (female), Ben (male)
    Beta College: Chitra (female), Dev (male)

    Elocution   solo, on-stage      first 10, second 5        saahithyolsavam
    Group Song  group, on-stage     first 20, second 15       sangeetholsavam
    Painting    solo, off-stage     first 8, second 4, third 0 chithrolsavam
    """
    alpha = await registry.create_college("Alpha College", "ALC")
    beta = await registry.create_college("Beta College", "BTC")

    solo = await registry.create_event_type("Solo Stage", {"first": 10, "second": 5}, is_onstage=True)
    group = await registry.create_event_type(
        "Group Stage", {"first": 20, "second": 15}, is_group=True, is_onstage=True
    )
    offstage = await registry.create_event_type("Solo Offstage", {"first": 8, "second": 4, "third": 0})

    elocution = await registry.create_event("Elocution", solo.id, "saahithyolsavam")
    group_song = await registry.create_event("Group Song", group.id, "sangeetholsavam")
    painting = await registry.create_event("Painting", offstage.id, "chithrolsavam")

    async def participant(college, name, gender, n):
        return await registry.register_participant(
            college.id, name=name, gender=gender,
            phone_number=f"90000000{n:02d}", cap_id=f"CAP{n:03d}",
            course="BA", semester=3
        )

    anu = await participant(alpha, "Anu", "female", 1)
    ben = await participant(alpha, "Ben", "male", 2)
    chitra = await participant(beta, "Chitra", "female", 3)
    dev = await participant(beta, "Dev", "male", 4)

    register = registry.create_event_registration
    registrations = SimpleNamespace(
        anu_elo=await register(elocution.id, alpha.id, [anu.id]),
        ben_elo=await register(elocution.id, alpha.id, [ben.id]),
        chitra_elo=await register(elocution.id, beta.id, [chitra.id]),
        alpha_group=await register(group_song.id, alpha.id, [anu.id, ben.id], group_name="Alpha Choir"),
        beta_group=await register(group_song.id, beta.id, [chitra.id, dev.id], group_name="Beta Choir"),
        anu_paint=await register(painting.id, alpha.id, [anu.id]),
        dev_paint=await register(painting.id, beta.id, [dev.id]),
    )

    return SimpleNamespace(
        alpha=alpha, beta=beta,
        solo=solo, group=group, offstage=offstage,
        elocution=elocution, group_song=group_song, painting=painting,
        anu=anu, ben=ben, chitra=chitra, dev=dev,
        reg=registrations,
    )


@pytest.fixture
async def all_results(fest, result_service):
    """Results for all three events."""
    elocution = await result_service.create_result(fest.elocution.id, [
        {"registration_id": fest.reg.anu_elo.id, "position": "first"},
        {"registration_id": fest.reg.chitra_elo.id, "position": "second"},
    ], acting_user_id=1)
    group_song = await result_service.create_result(fest.group_song.id, [
        {"registration_id": fest.reg.alpha_group.id, "position": "first"},
        {"registration_id": fest.reg.beta_group.id, "position": "second"},
    ], acting_user_id=1)
    painting = await result_service.create_result(fest.painting.id, [
        {"registration_id": fest.reg.dev_paint.id, "position": "first"},
        {"registration_id": fest.reg.anu_paint.id, "position": "third"},
    ], acting_user_id=1)
    return SimpleNamespace(elocution=elocution, group_song=group_song, painting=painting)
