"""HTTP-level tests for the auth, subject, session and analytics routes."""

import random
from datetime import datetime, time, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from studytracker.auth import hash_password, issue_token
from studytracker.database import init_db
from studytracker.models import LOCATIONS, STUDY_METHODS, StudySession, Subject, User
from studytracker.services.session_service import SessionConflictError, SessionService
from studytracker.services.subject_service import SubjectService, SubjectValidationError


def _today() -> datetime:
    return datetime.combine(datetime.now(timezone.utc).date(), time.min)


def _iso(moment: datetime) -> str:
    return moment.isoformat() + "Z"


def create_subject(client, headers, name="Mathematics", **extra):
    response = client.post("/api/subjects", json={"name": name, **extra}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["subject"]


def create_session(client, headers, subject_id, start, minutes, **extra):
    body = {
        "subjectId": subject_id,
        "startTime": _iso(start),
        "endTime": _iso(start + timedelta(minutes=minutes)),
        **extra,
    }
    response = client.post("/api/sessions", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["session"]


@pytest.fixture
def other_headers(db):
    other = User(name="Grace", email="grace@example.com", hashed_password=hash_password("hopper123"), timezone="UTC")
    db.add(other)
    db.commit()
    return {"Authorization": f"Bearer {issue_token(other)}"}


# ── Auth ──────────────────────────────────────────────────────────
class TestAuth:

    def test_register_login_and_me(self, client):
        response = client.post(
            "/api/auth/register",
            json={"name": "Linus", "email": "Linus@Example.com", "password": "kernel42"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["token"]
        assert body["user"]["email"] == "linus@example.com"
        assert body["user"]["goals"] == {"dailyStudyTime": 240, "weeklyStudyTime": 1680}
        assert body["user"]["preferences"]["timezone"] == "America/New_York"
        assert "hashedPassword" not in body["user"] and "hashed_password" not in body["user"]

        response = client.post("/api/auth/login", json={"email": "linus@example.com", "password": "kernel42"})
        assert response.status_code == 200
        token = response.json()["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["name"] == "Linus"

    def test_duplicate_email_is_rejected(self, client, user):
        response = client.post(
            "/api/auth/register",
            json={"name": "Ada again", "email": "ADA@example.com", "password": "secret123"},
        )
        assert response.status_code == 400

    def test_malformed_registration_is_a_400(self, client):
        response = client.post("/api/auth/register", json={"name": "X", "email": "not-an-email", "password": "123"})
        assert response.status_code == 400
        assert "errors" in response.json()

    def test_wrong_password(self, client, user):
        response = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "nope"})
        assert response.status_code == 401

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer garbage"}, {"Authorization": "Token x"}])
    def test_me_requires_a_valid_token(self, client, headers):
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_update_goals_merges(self, client, auth_headers):
        response = client.put("/api/auth/goals", json={"dailyStudyTime": 120}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["goals"] == {"dailyStudyTime": 120, "weeklyStudyTime": 1680}

    def test_update_preferences(self, client, auth_headers):
        response = client.put(
            "/api/auth/preferences",
            json={"timezone": "Europe/Berlin", "notifications": False},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["preferences"] == {
            "defaultBreakLength": 15,
            "notifications": False,
            "timezone": "Europe/Berlin",
        }

    def test_unknown_timezone_is_rejected(self, client, auth_headers):
        response = client.put("/api/auth/preferences", json={"timezone": "Mars/Olympus"}, headers=auth_headers)
        assert response.status_code == 400


# ── Subjects ──────────────────────────────────────────────────────
class TestSubjects:

    def test_create_with_defaults(self, client, auth_headers):
        subject = create_subject(client, auth_headers)

        assert subject["color"] == "#3B82F6"
        assert subject["weeklyGoal"] == 300
        assert subject["totalStudyTime"] == 0
        assert subject["totalSessions"] == 0

    def test_names_are_unique_ignoring_case(self, client, auth_headers):
        create_subject(client, auth_headers, "Mathematics")

        response = client.post("/api/subjects", json={"name": "  mathematics "}, headers=auth_headers)
        assert response.status_code == 400

    def test_same_name_for_another_user_is_fine(self, client, auth_headers, other_headers):
        create_subject(client, auth_headers, "Mathematics")
        create_subject(client, other_headers, "Mathematics")

    def test_blank_names_are_rejected(self, client, auth_headers):
        assert client.post("/api/subjects", json={"name": "   "}, headers=auth_headers).status_code == 400

        subject = create_subject(client, auth_headers, "  Biology  ")
        assert subject["name"] == "Biology"

        response = client.put(f"/api/subjects/{subject['id']}", json={"name": " \t "}, headers=auth_headers)
        assert response.status_code == 400
        assert client.get(f"/api/subjects/{subject['id']}", headers=auth_headers).json()["name"] == "Biology"

    def test_service_rejects_blank_names(self, db, user):
        with pytest.raises(SubjectValidationError):
            SubjectService.create(db, user.id, {"name": "   "})

        subject = SubjectService.create(db, user.id, {"name": "Biology"})
        with pytest.raises(SubjectValidationError):
            SubjectService.update(db, user.id, subject.id, {"name": "  "})

    def test_invalid_color(self, client, auth_headers):
        response = client.post("/api/subjects", json={"name": "Art", "color": "red"}, headers=auth_headers)
        assert response.status_code == 400

    def test_list_includes_weekly_progress(self, client, auth_headers):
        subject = create_subject(client, auth_headers, weeklyGoal=120)
        create_session(client, auth_headers, subject["id"], _today() + timedelta(minutes=1), 30)

        listed = client.get("/api/subjects", headers=auth_headers).json()

        assert listed[0]["currentWeekTime"] == 30
        assert listed[0]["progressPercentage"] == 25.0

    def test_detail_has_statistics(self, client, auth_headers):
        subject = create_subject(client, auth_headers)
        create_session(client, auth_headers, subject["id"], _today() + timedelta(minutes=1), 60, focusRating=9)

        detail = client.get(f"/api/subjects/{subject['id']}", headers=auth_headers).json()

        assert detail["statistics"]["thisWeek"] == {"totalTime": 60, "sessions": 1}
        assert detail["statistics"]["averageSession"] == {"avgDuration": 60, "avgFocus": 9}
        assert len(detail["recentSessions"]) == 1

    def test_other_users_subject_is_not_found(self, client, auth_headers, other_headers):
        subject = create_subject(client, other_headers, "Secret")

        assert client.get(f"/api/subjects/{subject['id']}", headers=auth_headers).status_code == 404
        assert client.delete(f"/api/subjects/{subject['id']}", headers=auth_headers).status_code == 404

    def test_rename_conflict(self, client, auth_headers):
        create_subject(client, auth_headers, "Physics")
        chemistry = create_subject(client, auth_headers, "Chemistry")

        response = client.put(f"/api/subjects/{chemistry['id']}", json={"name": "PHYSICS"}, headers=auth_headers)
        assert response.status_code == 400

        response = client.put(
            f"/api/subjects/{chemistry['id']}", json={"name": "Organic Chemistry", "weeklyGoal": 90},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["subject"]["weeklyGoal"] == 90

    def test_delete_requires_force_when_sessions_exist(self, client, auth_headers):
        subject = create_subject(client, auth_headers)
        create_session(client, auth_headers, subject["id"], _today() + timedelta(minutes=1), 30)
        create_session(client, auth_headers, subject["id"], _today() + timedelta(hours=2), 30)

        refused = client.delete(f"/api/subjects/{subject['id']}", headers=auth_headers)
        assert refused.status_code == 400
        assert refused.json()["sessionCount"] == 2
        assert "force=true" in refused.json()["detail"]

        forced = client.delete(f"/api/subjects/{subject['id']}?force=true", headers=auth_headers)
        assert forced.status_code == 200
        assert forced.json()["deletedSessions"] == 2

        assert client.get(f"/api/subjects/{subject['id']}", headers=auth_headers).status_code == 404
        assert client.get("/api/sessions", headers=auth_headers).json()["pagination"]["totalSessions"] == 0

    def test_delete_empty_subject(self, client, auth_headers):
        subject = create_subject(client, auth_headers)

        response = client.delete(f"/api/subjects/{subject['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["deletedSessions"] == 0

    def test_subject_sessions_are_paginated(self, client, auth_headers):
        subject = create_subject(client, auth_headers)
        for hour in range(3):
            create_session(client, auth_headers, subject["id"], _today() - timedelta(days=1, hours=hour), 20)

        body = client.get(f"/api/subjects/{subject['id']}/sessions?limit=2", headers=auth_headers).json()

        assert body["subject"]["name"] == "Mathematics"
        assert len(body["sessions"]) == 2
        assert body["pagination"]["totalPages"] == 2
        assert body["pagination"]["hasNext"] is True

    def test_recalculate_repairs_totals(self, client, auth_headers, db):
        subject = create_subject(client, auth_headers)
        create_session(client, auth_headers, subject["id"], _today() + timedelta(minutes=1), 45)

        stored = db.get(Subject, subject["id"])
        stored.total_study_time = 999
        stored.total_sessions = 7
        db.commit()

        response = client.post(f"/api/subjects/{subject['id']}/recalculate", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["subject"]["totalStudyTime"] == 45
        assert response.json()["subject"]["totalSessions"] == 1


# ── Sessions ──────────────────────────────────────────────────────
class TestSessions:

    def _subject_totals(self, client, headers, subject_id):
        subject = client.get(f"/api/subjects/{subject_id}", headers=headers).json()
        return subject["totalStudyTime"], subject["totalSessions"]

    def test_create_derives_duration_and_credits_subject(self, client, auth_headers):
        subject = create_subject(client, auth_headers)

        session = create_session(
            client, auth_headers, subject["id"], _today() + timedelta(minutes=1), 45,
            studyMethod="practice_problems", location="library", focusRating=8, difficultyRating=6,
        )

        assert session["duration"] == 45
        assert session["formattedDuration"] == "45m"
        assert session["subject"]["name"] == "Mathematics"
        assert self._subject_totals(client, auth_headers, subject["id"]) == (45, 1)

    def test_defaults(self, client, auth_headers):
        subject = create_subject(client, auth_headers)

        session = create_session(client, auth_headers, subject["id"], _today() + timedelta(minutes=1), 90)

        assert session["studyMethod"] == "other"
        assert session["location"] == "other"
        assert session["focusRating"] == 5
        assert session["formattedDuration"] == "1h 30m"

    @pytest.mark.parametrize("offset", [timedelta(minutes=-10), timedelta(0), timedelta(seconds=20)])
    def test_rejects_bad_time_ranges(self, client, auth_headers, offset):
        subject = create_subject(client, auth_headers)
        start = _today() + timedelta(minutes=5)

        response = client.post(
            "/api/sessions",
            json={"subjectId": subject["id"], "startTime": _iso(start), "endTime": _iso(start + offset)},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert self._subject_totals(client, auth_headers, subject["id"]) == (0, 0)

    @pytest.mark.parametrize("extra", [{"focusRating": 11}, {"difficultyRating": 0}, {"studyMethod": "osmosis"},
                                       {"location": "moon"}, {"notes": "x" * 1001}])
    def test_rejects_invalid_fields(self, client, auth_headers, extra):
        subject = create_subject(client, auth_headers)
        start = _today() + timedelta(minutes=5)

        response = client.post(
            "/api/sessions",
            json={"subjectId": subject["id"], "startTime": _iso(start), "endTime": _iso(start + timedelta(hours=1)),
                  **extra},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_accepts_every_known_method_and_location(self, client, auth_headers):
        subject = create_subject(client, auth_headers)
        start = _today() - timedelta(days=1)

        for offset, (method, location) in enumerate(zip(STUDY_METHODS, LOCATIONS * 2)):
            session = create_session(client, auth_headers, subject["id"], start + timedelta(hours=offset), 10,
                                     studyMethod=method, location=location)
            assert (session["studyMethod"], session["location"]) == (method, location)

    def test_unknown_subject(self, client, auth_headers, other_headers):
        foreign = create_subject(client, other_headers, "Not yours")
        start = _today() + timedelta(minutes=5)

        response = client.post(
            "/api/sessions",
            json={"subjectId": foreign["id"], "startTime": _iso(start), "endTime": _iso(start + timedelta(hours=1))},
            headers=auth_headers,
        )
        assert response.status_code == 404

    def test_update_adjusts_totals(self, client, auth_headers):
        subject = create_subject(client, auth_headers)
        start = _today() + timedelta(minutes=1)
        session = create_session(client, auth_headers, subject["id"], start, 30)

        response = client.put(
            f"/api/sessions/{session['id']}",
            json={"endTime": _iso(start + timedelta(minutes=75)), "notes": "chapter 4"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["session"]["duration"] == 75
        assert response.json()["session"]["notes"] == "chapter 4"
        assert self._subject_totals(client, auth_headers, subject["id"]) == (75, 1)

    def test_update_moves_session_between_subjects(self, client, auth_headers):
        maths = create_subject(client, auth_headers, "Mathematics")
        physics = create_subject(client, auth_headers, "Physics")
        session = create_session(client, auth_headers, maths["id"], _today() + timedelta(minutes=1), 40)

        response = client.put(f"/api/sessions/{session['id']}", json={"subjectId": physics["id"]},
                              headers=auth_headers)

        assert response.status_code == 200
        assert self._subject_totals(client, auth_headers, maths["id"]) == (0, 0)
        assert self._subject_totals(client, auth_headers, physics["id"]) == (40, 1)

    def test_update_rejects_reversed_times(self, client, auth_headers):
        subject = create_subject(client, auth_headers)
        start = _today() + timedelta(hours=1)
        session = create_session(client, auth_headers, subject["id"], start, 30)

        response = client.put(f"/api/sessions/{session['id']}", json={"endTime": _iso(start - timedelta(minutes=5))},
                              headers=auth_headers)

        assert response.status_code == 400
        assert self._subject_totals(client, auth_headers, subject["id"]) == (30, 1)

    def test_concurrent_modification_is_a_409(self, client, auth_headers, monkeypatch):
        subject = create_subject(client, auth_headers)
        session = create_session(client, auth_headers, subject["id"], _today() + timedelta(minutes=1), 30)

        def conflict(*args, **kwargs):
            raise SessionConflictError("Session was modified by another request; reload and retry")

        monkeypatch.setattr(SessionService, "update", conflict)
        monkeypatch.setattr(SessionService, "delete", conflict)

        response = client.put(f"/api/sessions/{session['id']}", json={"notes": "late"}, headers=auth_headers)
        assert response.status_code == 409
        assert client.delete(f"/api/sessions/{session['id']}", headers=auth_headers).status_code == 409

    def test_delete_reverses_totals(self, client, auth_headers):
        subject = create_subject(client, auth_headers)
        session = create_session(client, auth_headers, subject["id"], _today() + timedelta(minutes=1), 30)

        assert client.delete(f"/api/sessions/{session['id']}", headers=auth_headers).status_code == 200
        assert client.get(f"/api/sessions/{session['id']}", headers=auth_headers).status_code == 404
        assert client.delete(f"/api/sessions/{session['id']}", headers=auth_headers).status_code == 404
        assert self._subject_totals(client, auth_headers, subject["id"]) == (0, 0)

    def test_list_is_newest_first_and_filterable(self, client, auth_headers):
        subject = create_subject(client, auth_headers)
        base = _today() - timedelta(days=3)
        create_session(client, auth_headers, subject["id"], base, 20, studyMethod="reading")
        create_session(client, auth_headers, subject["id"], base + timedelta(days=1), 20, studyMethod="video")
        newest = create_session(client, auth_headers, subject["id"], base + timedelta(days=2), 20,
                                studyMethod="reading")

        body = client.get("/api/sessions?limit=2", headers=auth_headers).json()
        assert body["sessions"][0]["id"] == newest["id"]
        assert body["pagination"] == {
            "currentPage": 1,
            "totalPages": 2,
            "totalSessions": 3,
            "hasNext": True,
            "hasPrev": False,
        }

        body = client.get("/api/sessions?studyMethod=reading", headers=auth_headers).json()
        assert body["pagination"]["totalSessions"] == 2

        start = (base + timedelta(days=1)).date().isoformat()
        body = client.get(f"/api/sessions?startDate={start}", headers=auth_headers).json()
        assert body["pagination"]["totalSessions"] == 2

    def test_list_rejects_malformed_dates(self, client, auth_headers):
        assert client.get("/api/sessions?startDate=yesterday", headers=auth_headers).status_code == 400

    def test_sessions_are_private(self, client, auth_headers, other_headers):
        subject = create_subject(client, auth_headers)
        session = create_session(client, auth_headers, subject["id"], _today() + timedelta(minutes=1), 30)

        assert client.get(f"/api/sessions/{session['id']}", headers=other_headers).status_code == 404
        assert client.get("/api/sessions", headers=other_headers).json()["sessions"] == []

    def test_today_summary(self, client, auth_headers):
        maths = create_subject(client, auth_headers, "Mathematics")
        physics = create_subject(client, auth_headers, "Physics", color="#D32F2F")
        create_session(client, auth_headers, maths["id"], _today() + timedelta(minutes=1), 45)
        create_session(client, auth_headers, physics["id"], _today() + timedelta(hours=1), 30)
        create_session(client, auth_headers, physics["id"], _today() - timedelta(hours=5), 30)

        body = client.get("/api/sessions/summary/today", headers=auth_headers).json()

        assert body["totalTime"] == 75
        assert body["totalSessions"] == 2
        assert body["subjectBreakdown"]["Physics"] == {"time": 30, "sessions": 1, "color": "#D32F2F"}


def _consistent(db, subject_ids):
    db.expire_all()
    for subject_id in subject_ids:
        subject = db.get(Subject, subject_id)
        sessions = db.query(StudySession).filter_by(subject_id=subject_id).all()
        assert subject.total_study_time == sum(s.duration for s in sessions)
        assert subject.total_sessions == len(sessions)


@pytest.mark.parametrize("seed", [1, 7, 42])
def test_subject_totals_follow_random_writes(db, user, seed):
    rng = random.Random(seed)
    subject_ids = [
        SubjectService.create(db, user.id, {"name": name}).id
        for name in ("Mathematics", "Physics", "Chemistry")
    ]
    live = []
    base = datetime(2024, 3, 1, 8, 0)

    for step in range(40):
        action = rng.choice(["create", "create", "update", "delete"]) if live else "create"
        if action == "create":
            start = base + timedelta(hours=step)
            session = SessionService.create(db, user.id, {
                "subject_id": rng.choice(subject_ids),
                "start_time": start,
                "end_time": start + timedelta(minutes=rng.randint(1, 180)),
            })
            live.append(session.id)
        elif action == "update":
            session = SessionService.get_by_id(db, user.id, rng.choice(live))
            SessionService.update(db, user.id, session.id, {
                "subject_id": rng.choice(subject_ids),
                "end_time": session.start_time + timedelta(minutes=rng.randint(1, 180)),
            })
        else:
            session_id = live.pop(rng.randrange(len(live)))
            assert SessionService.delete(db, user.id, session_id)
        _consistent(db, subject_ids)


@pytest.fixture
def shared_file_db(tmp_path):
    """Independent sessions on one SQLite file, each with its own connection."""
    engine = create_engine(f"sqlite:///{tmp_path / 'studytracker.db'}")
    init_db(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup = factory()
    user = User(name="Ada", email="ada@example.com", hashed_password=hash_password("secret123"), timezone="UTC")
    setup.add(user)
    setup.commit()
    subject = SubjectService.create(setup, user.id, {"name": "Mathematics"})
    start = datetime(2024, 3, 1, 8, 0)
    session = SessionService.create(setup, user.id, {
        "subject_id": subject.id,
        "start_time": start,
        "end_time": start + timedelta(minutes=30),
    })
    ids = {"user": user.id, "subject": subject.id, "session": session.id, "start": start}
    setup.close()

    yield factory, ids
    engine.dispose()


def test_interleaved_updates_keep_totals_consistent(shared_file_db):
    factory, ids = shared_file_db
    first, second = factory(), factory()
    try:
        # both requests read the 30 minute session before either writes
        SessionService.get_by_id(first, ids["user"], ids["session"])
        SessionService.get_by_id(second, ids["user"], ids["session"])

        SessionService.update(first, ids["user"], ids["session"], {"end_time": ids["start"] + timedelta(minutes=60)})
        with pytest.raises(SessionConflictError):
            SessionService.update(second, ids["user"], ids["session"],
                                  {"end_time": ids["start"] + timedelta(minutes=90)})
    finally:
        first.close()
        second.close()

    check = factory()
    try:
        _consistent(check, [ids["subject"]])
        assert check.get(Subject, ids["subject"]).total_study_time == 60
    finally:
        check.close()


def test_delete_of_outdated_copy_is_refused(shared_file_db):
    factory, ids = shared_file_db
    first, second = factory(), factory()
    try:
        SessionService.get_by_id(first, ids["user"], ids["session"])
        SessionService.get_by_id(second, ids["user"], ids["session"])

        SessionService.update(first, ids["user"], ids["session"], {"end_time": ids["start"] + timedelta(minutes=75)})
        with pytest.raises(SessionConflictError):
            SessionService.delete(second, ids["user"], ids["session"])
    finally:
        first.close()
        second.close()

    check = factory()
    try:
        _consistent(check, [ids["subject"]])
        assert check.get(Subject, ids["subject"]).total_study_time == 75
        assert check.get(Subject, ids["subject"]).total_sessions == 1
    finally:
        check.close()


# ── Analytics ─────────────────────────────────────────────────────
class TestAnalytics:

    def test_dashboard(self, client, auth_headers):
        subject = create_subject(client, auth_headers)
        create_session(client, auth_headers, subject["id"], _today() + timedelta(minutes=1), 60, focusRating=8)

        body = client.get("/api/analytics/dashboard", headers=auth_headers).json()

        assert body["overall"]["totalStudyTime"] == 60
        assert body["periods"]["today"]["studyTime"] == 60
        assert body["periods"]["today"]["goalProgress"] == 25.0
        assert body["periods"]["thisWeek"]["sessions"] == 1
        assert body["goals"] == {"dailyStudyTime": 240, "weeklyStudyTime": 1680}

    def test_time_series_defaults_to_thirty_days(self, client, auth_headers):
        body = client.get("/api/analytics/time-series?period=daily", headers=auth_headers).json()

        assert len(body["data"]) == 30
        assert body["data"][-1]["date"] == _today().date().isoformat()

    def test_time_series_counts_recent_session(self, client, auth_headers):
        subject = create_subject(client, auth_headers)
        create_session(client, auth_headers, subject["id"], _today() - timedelta(days=2) + timedelta(hours=9), 50)

        body = client.get("/api/analytics/time-series?period=daily&days=14", headers=auth_headers).json()

        assert len(body["data"]) == 14
        assert body["data"][11]["totalTime"] == 50
        assert sum(entry["sessionCount"] for entry in body["data"]) == 1

    def test_time_series_explicit_weekly_range(self, client, auth_headers):
        subject = create_subject(client, auth_headers)
        create_session(client, auth_headers, subject["id"], datetime(2024, 1, 10, 9, 0), 35)

        response = client.get(
            "/api/analytics/time-series?period=weekly&startDate=2024-01-01&endDate=2024-01-31",
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert [entry["date"] for entry in data] == ["2024-W01", "2024-W02", "2024-W03", "2024-W04", "2024-W05"]
        assert data[1]["totalTime"] == 35

    def test_time_series_filters_by_subject(self, client, auth_headers):
        maths = create_subject(client, auth_headers, "Mathematics")
        physics = create_subject(client, auth_headers, "Physics")
        create_session(client, auth_headers, maths["id"], datetime(2024, 1, 10, 9, 0), 35)
        create_session(client, auth_headers, physics["id"], datetime(2024, 1, 11, 9, 0), 25)

        data = client.get(
            f"/api/analytics/time-series?period=monthly&startDate=2024-01-01&endDate=2024-01-31"
            f"&subjectId={physics['id']}",
            headers=auth_headers,
        ).json()["data"]

        assert data == [{"date": "2024-01", "totalTime": 25, "sessionCount": 1, "avgFocus": 5, "avgDifficulty": 5}]

    @pytest.mark.parametrize("query", [
        "period=hourly",
        "period=daily&days=0",
        "period=daily&days=366",
        "period=daily&startDate=not-a-date&endDate=2024-01-31",
        "period=daily&startDate=2024-01-01",
        "period=daily&startDate=2024-02-01&endDate=2024-01-01",
        "period=monthly&startDate=9999-11-01&endDate=9999-12-31",
        "period=daily&startDate=0001-01-01&endDate=0001-01-31",
        "period=daily&startDate=2022-01-01&endDate=2024-01-01",
    ])
    def test_time_series_rejects_bad_queries(self, client, auth_headers, query):
        assert client.get(f"/api/analytics/time-series?{query}", headers=auth_headers).status_code == 400

    def test_subject_shares(self, client, auth_headers):
        maths = create_subject(client, auth_headers, "Mathematics")
        physics = create_subject(client, auth_headers, "Physics")
        yesterday = _today() - timedelta(days=1)
        create_session(client, auth_headers, maths["id"], yesterday + timedelta(hours=9), 60, studyMethod="notes")
        create_session(client, auth_headers, physics["id"], yesterday + timedelta(hours=14), 20)

        body = client.get("/api/analytics/subjects?days=7", headers=auth_headers).json()

        assert body["summary"] == {"totalStudyTime": 80, "totalSessions": 2, "subjectCount": 2}
        assert [row["subject"]["name"] for row in body["subjects"]] == ["Mathematics", "Physics"]
        assert body["subjects"][0]["timePercentage"] == 75.0
        assert body["subjects"][0]["preferredMethods"] == [{"method": "notes", "count": 1}]

    def test_patterns(self, client, auth_headers):
        subject = create_subject(client, auth_headers)
        start = _today() - timedelta(days=1) + timedelta(hours=9)
        create_session(client, auth_headers, subject["id"], start, 30, focusRating=7, difficultyRating=4)

        patterns = client.get("/api/analytics/patterns", headers=auth_headers).json()["patterns"]

        assert len(patterns["hourlyDistribution"]) == 24
        assert patterns["hourlyDistribution"][9]["sessionCount"] == 1
        assert len(patterns["dailyDistribution"]) == 7
        assert patterns["dailyDistribution"][(start.weekday() + 1) % 7]["totalTime"] == 30
        assert patterns["focusVsDifficulty"] == [{"focus": 7, "difficulty": 4, "sessionCount": 1, "avgDuration": 30}]

    @pytest.mark.parametrize("path", [
        "/api/analytics/dashboard",
        "/api/analytics/time-series?period=daily",
        "/api/analytics/subjects",
        "/api/analytics/patterns",
    ])
    def test_requires_auth(self, client, path):
        assert client.get(path).status_code == 401


def test_health(client):
    body = client.get("/api/health").json()

    assert body["status"] == "OK"
