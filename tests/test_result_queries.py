"""
Read-side projection tests.
"""

import pytest
from sqlalchemy import func, select

from festival.database.models import Leaderboard
from festival.utils.exceptions import NotFoundError


class TestResultQueries:

    async def test_fetch_all_results_is_fully_loaded(self, fest, all_results, query_service):
        results = await query_service.fetch_all_results()

        assert [r.serial_number for r in results] == [1, 2, 3]
        group_song = results[1]
        assert group_song.event.name == "Group Song"
        assert group_song.event.event_type.is_group is True
        winner = group_song.winning_registrations[0]
        assert [p.user.name for p in winner.registration.participants] == ["Anu", "Ben"]
        assert winner.registration.participants[0].user.college.name == "Alpha College"

    async def test_result_by_event(self, fest, all_results, query_service):
        view = await query_service.get_result_by_event(fest.elocution.id)

        assert view.name == "Elocution"
        assert view.serial_number == 1
        assert view.is_group is False and view.is_onstage is True
        assert [(w.position, w.score) for w in view.winning_registrations] == [("first", 10), ("second", 5)]
        first = view.winning_registrations[0]
        assert first.college_name == "Alpha College"
        assert [(p.name, p.user_code) for p in first.participants] == [("Anu", fest.anu.user_code)]
        assert view.to_dict()['winning_registrations'][1]['participants'][0]['name'] == "Chitra"

    async def test_result_by_event_without_result(self, fest, query_service):
        with pytest.raises(NotFoundError) as exc_info:
            await query_service.get_result_by_event(fest.painting.id)
        assert "Result for event not found" in str(exc_info.value)

    async def test_grouped_by_college_matches_snapshot(self, fest, all_results, query_service,
                                                       leaderboard_service):
        grouped = await query_service.get_results_grouped_by_college()
        snapshot = await leaderboard_service.get_latest_leaderboard()

        assert grouped == snapshot.college_results

    async def test_queries_do_not_write_snapshots(self, fest, all_results, query_service, db):
        async with db.transaction() as session:
            before = (await session.execute(select(func.count(Leaderboard.id)))).scalar_one()

        await query_service.get_results_grouped_by_college()
        await query_service.get_detailed_gender_top_scorers()

        async with db.transaction() as session:
            after = (await session.execute(select(func.count(Leaderboard.id)))).scalar_one()
        assert before == after

    async def test_results_by_college(self, fest, all_results, query_service):
        beta = await query_service.get_results_by_college(fest.beta.id)

        assert beta.college == "Beta College"
        assert beta.total_score == 28
        assert {(e.event, e.position, e.score) for e in beta.events} == {
            ("Elocution", "second", 5), ("Group Song", "second", 15), ("Painting", "first", 8)
        }

    async def test_results_by_college_without_placements(self, fest, registry, query_service):
        gamma = await registry.create_college("Gamma College")
        standing = await query_service.get_results_by_college(gamma.id)

        assert standing.total_score == 0
        assert standing.events == []

    async def test_results_by_unknown_college(self, fest, query_service):
        with pytest.raises(NotFoundError):
            await query_service.get_results_by_college(9999)

    async def test_detailed_gender_top_scorers(self, fest, all_results, query_service):
        genders = await query_service.get_detailed_gender_top_scorers()

        assert [g.gender for g in genders] == ["female"]
        assert [(s.name, s.score) for s in genders[0].top_scorers] == [("Anu", 10), ("Chitra", 5)]

    async def test_individual_results(self, fest, all_results, query_service):
        listing = await query_service.get_individual_results()

        assert [item['name'] for item in listing] == ["Elocution", "Painting"]
        painting = listing[1]
        assert painting['result_category'] == "chithrolsavam"
        assert painting['winning_registrations'] == [
            {'position': 'first', 'score': 8, 'participants': ['Dev']},
            {'position': 'third', 'score': 0, 'participants': ['Anu']},
        ]
