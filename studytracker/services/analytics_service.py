"""
analytics_service.py — Study analytics aggregation
Turns a user's study sessions into dashboard totals, zero-filled time series,
per-subject rollups and study pattern statistics.

Everything here is a pure transform over in-memory records: no database access,
no hidden state. Callers load the sessions/subjects for one user and pass them in.

Time handling: when the reference ``now`` (or ``tz``) is timezone-aware, naive
session timestamps are read as UTC and converted into that zone before being
partitioned or bucketed. With a naive ``now`` everything is compared as given.
"""

from collections import Counter
from datetime import MAXYEAR, MINYEAR, date, datetime, timedelta, timezone

from studytracker.models.study_session import format_duration

PERIODS = ("daily", "weekly", "monthly")
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
RECENT_SESSIONS_LIMIT = 5


class AnalyticsValidationError(ValueError):
    """Raised when aggregation arguments are malformed (bad period, range or window)."""


class _Bucket:
    """Running sum/count accumulator for one group of sessions."""

    __slots__ = ("count", "total_time", "focus_sum", "difficulty_sum")

    def __init__(self):
        self.count = 0
        self.total_time = 0
        self.focus_sum = 0
        self.difficulty_sum = 0

    def add(self, session):
        self.count += 1
        self.total_time += session.duration or 0
        self.focus_sum += session.focus_rating or 0
        self.difficulty_sum += session.difficulty_rating or 0

    @property
    def avg_focus(self) -> float:
        return self.focus_sum / self.count if self.count else 0

    @property
    def avg_difficulty(self) -> float:
        return self.difficulty_sum / self.count if self.count else 0

    @property
    def avg_duration(self) -> float:
        return self.total_time / self.count if self.count else 0

    def summary(self) -> dict:
        return {
            "totalTime": self.total_time,
            "sessionCount": self.count,
            "avgFocus": _round2(self.avg_focus),
            "avgDifficulty": _round2(self.avg_difficulty),
        }


def _round2(value) -> float:
    return round(value, 2) if value else 0


def _percentage(part, whole) -> float:
    return _round2(part / whole * 100) if whole and whole > 0 else 0


def _localize(value: datetime, tz):
    if tz is None:
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz)


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _start_of_week(moment: datetime) -> datetime:
    """Weeks start on Sunday 00:00."""
    day = _start_of_day(moment)
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _next_month(value):
    if value.month == 12:
        return value.replace(year=value.year + 1, month=1, day=1)
    return value.replace(month=value.month + 1, day=1)


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise AnalyticsValidationError(f"Expected a date, got {value!r}")


def _check_range(start: date, end: date, max_days: int = None):
    if start > end:
        raise AnalyticsValidationError("Start date must not be after end date")
    # first and last years leave no room for bucket stepping or UTC padding
    if start.year <= MINYEAR or end.year >= MAXYEAR:
        raise AnalyticsValidationError("Date range is outside the supported calendar")
    if max_days is not None and (end - start).days + 1 > max_days:
        raise AnalyticsValidationError(f"Date range must not exceed {max_days} days")


def _check_window(window_days):
    if isinstance(window_days, bool) or not isinstance(window_days, int) or window_days <= 0:
        raise AnalyticsValidationError("Window must be a positive number of days")


def _window_start(window_days: int, now: datetime) -> datetime:
    _check_window(window_days)
    return _start_of_day(now) - timedelta(days=window_days)


def _week_key(day: date) -> str:
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def bucket_key(period: str, day: date) -> str:
    """Bucket label of a calendar day; the same function labels generated buckets."""
    if period == "daily":
        return day.isoformat()
    if period == "weekly":
        return _week_key(day)
    if period == "monthly":
        return f"{day.year}-{day.month:02d}"
    raise AnalyticsValidationError("Period must be daily, weekly, or monthly")


def bucket_keys(period: str, start: date, end: date) -> list:
    """Every bucket touched by [start, end], in chronological order."""
    if period == "daily":
        cursor, step = start, lambda d: d + timedelta(days=1)
    elif period == "weekly":
        # ISO weeks start on Monday
        cursor, step = start - timedelta(days=start.weekday()), lambda d: d + timedelta(days=7)
    elif period == "monthly":
        cursor, step = start.replace(day=1), _next_month
    else:
        raise AnalyticsValidationError("Period must be daily, weekly, or monthly")

    keys = []
    while cursor <= end:
        keys.append(bucket_key(period, cursor))
        cursor = step(cursor)
    return keys


class AnalyticsService:

    @staticmethod
    def window_dates(days: int, now: datetime = None) -> tuple:
        """The ``days`` calendar days ending today, as (start_date, end_date)."""
        _check_window(days)
        now = now or datetime.now(timezone.utc)
        end = now.date()
        return end - timedelta(days=days - 1), end

    @staticmethod
    def validate_range(start_date, end_date, max_days: int = None) -> tuple:
        """Check an explicit [start_date, end_date] range; returns it as dates."""
        start, end = _as_date(start_date), _as_date(end_date)
        _check_range(start, end, max_days)
        return start, end

    @staticmethod
    def dashboard_summary(sessions, goals: dict = None, now: datetime = None) -> dict:
        """All-time totals plus today/week/month/year partitions and goal progress."""
        now = now or datetime.now(timezone.utc)
        tz = now.tzinfo

        today = _start_of_day(now)
        week = _start_of_week(now)
        month = today.replace(day=1)
        year = today.replace(month=1, day=1)
        partitions = {
            "today": (today, today + timedelta(days=1)),
            "thisWeek": (week, week + timedelta(days=7)),
            "thisMonth": (month, _next_month(month)),
            "thisYear": (year, year.replace(year=year.year + 1)),
        }

        overall = _Bucket()
        buckets = {name: _Bucket() for name in partitions}
        for session in sessions:
            started = _localize(session.start_time, tz)
            overall.add(session)
            for name, (lo, hi) in partitions.items():
                if lo <= started < hi:
                    buckets[name].add(session)

        goals = dict(goals) if goals else {"dailyStudyTime": 0, "weeklyStudyTime": 0}
        goal_for = {
            "today": goals.get("dailyStudyTime") or 0,
            "thisWeek": goals.get("weeklyStudyTime") or 0,
        }

        periods = {}
        for name, bucket in buckets.items():
            entry = {
                "studyTime": bucket.total_time,
                "sessions": bucket.count,
                "averageFocusRating": _round2(bucket.avg_focus),
                "averageDifficultyRating": _round2(bucket.avg_difficulty),
            }
            if name in goal_for:
                entry["goalProgress"] = _percentage(bucket.total_time, goal_for[name])
            periods[name] = entry

        return {
            "overall": {
                "totalStudyTime": overall.total_time,
                "totalSessions": overall.count,
                "averageFocusRating": _round2(overall.avg_focus),
                "averageDifficultyRating": _round2(overall.avg_difficulty),
            },
            "periods": periods,
            "goals": goals,
        }

    @staticmethod
    def time_series(sessions, period: str, start_date, end_date, tz=None) -> dict:
        """One zero-filled bucket per day/ISO week/month in [start_date, end_date]."""
        if period not in PERIODS:
            raise AnalyticsValidationError("Period must be daily, weekly, or monthly")
        start, end = AnalyticsService.validate_range(start_date, end_date)

        buckets = {key: _Bucket() for key in bucket_keys(period, start, end)}
        for session in sessions:
            day = _localize(session.start_time, tz).date()
            if start <= day <= end:
                buckets[bucket_key(period, day)].add(session)

        return {
            "period": period,
            "dateRange": {"start": start.isoformat(), "end": end.isoformat()},
            "data": [{"date": key, **bucket.summary()} for key, bucket in buckets.items()],
        }

    @staticmethod
    def subject_analytics(sessions, subjects, window_days: int, now: datetime = None) -> dict:
        """Per-subject totals, preferred methods/locations and share of study time."""
        now = now or datetime.now(timezone.utc)
        start = _window_start(window_days, now)
        tz = now.tzinfo
        subject_by_id = {subject.id: subject for subject in subjects}

        groups = {}
        for session in sessions:
            started = _localize(session.start_time, tz)
            if not (start <= started <= now):
                continue
            subject = subject_by_id.get(session.subject_id)
            if subject is None:
                continue
            group = groups.get(subject.id)
            if group is None:
                group = groups[subject.id] = (_Bucket(), Counter(), Counter())
            bucket, methods, locations = group
            bucket.add(session)
            methods[session.study_method] += 1
            locations[session.location] += 1

        total_time = sum(bucket.total_time for bucket, _, _ in groups.values())
        total_sessions = sum(bucket.count for bucket, _, _ in groups.values())

        rows = []
        for subject_id, (bucket, methods, locations) in groups.items():
            subject = subject_by_id[subject_id]
            rows.append({
                "subject": {
                    "id": subject.id,
                    "name": subject.name,
                    "color": subject.color,
                    "weeklyGoal": subject.weekly_goal,
                },
                "totalTime": bucket.total_time,
                "sessionCount": bucket.count,
                "avgFocus": _round2(bucket.avg_focus),
                "avgDifficulty": _round2(bucket.avg_difficulty),
                # most_common keeps first-encountered order among equal counts
                "preferredMethods": [
                    {"method": method, "count": count} for method, count in methods.most_common(3)
                ],
                "preferredLocations": [
                    {"location": location, "count": count} for location, count in locations.most_common(3)
                ],
                "timePercentage": _percentage(bucket.total_time, total_time),
                "sessionPercentage": _percentage(bucket.count, total_sessions),
            })
        rows.sort(key=lambda row: row["totalTime"], reverse=True)

        return {
            "dateRange": {"start": start.date().isoformat(), "end": now.date().isoformat()},
            "summary": {
                "totalStudyTime": total_time,
                "totalSessions": total_sessions,
                "subjectCount": len(rows),
            },
            "subjects": rows,
        }

    @staticmethod
    def pattern_analysis(sessions, window_days: int, now: datetime = None) -> dict:
        """Hour/weekday distributions, focus-vs-difficulty grid and method/location effectiveness."""
        now = now or datetime.now(timezone.utc)
        start = _window_start(window_days, now)
        tz = now.tzinfo

        hours = [_Bucket() for _ in range(24)]
        weekdays = [_Bucket() for _ in range(7)]  # index 0 is Sunday
        grid = {}
        methods = {}
        locations = {}

        for session in sessions:
            started = _localize(session.start_time, tz)
            if not (start <= started <= now):
                continue
            hours[started.hour].add(session)
            weekdays[(started.weekday() + 1) % 7].add(session)

            cell = (int(round(session.focus_rating)), int(round(session.difficulty_rating)))
            grid.setdefault(cell, _Bucket()).add(session)
            methods.setdefault(session.study_method, _Bucket()).add(session)
            locations.setdefault(session.location, _Bucket()).add(session)

        def effectiveness(groups, label):
            ranked = sorted(groups.items(), key=lambda item: item[1].avg_focus, reverse=True)
            return [
                {
                    label: name,
                    "sessionCount": bucket.count,
                    "totalTime": bucket.total_time,
                    "avgFocus": _round2(bucket.avg_focus),
                    "avgDifficulty": _round2(bucket.avg_difficulty),
                }
                for name, bucket in ranked
            ]

        return {
            "dateRange": {"start": start.date().isoformat(), "end": now.date().isoformat()},
            "patterns": {
                "hourlyDistribution": [
                    {
                        "hour": hour,
                        "sessionCount": bucket.count,
                        "totalTime": bucket.total_time,
                        "avgFocus": _round2(bucket.avg_focus),
                    }
                    for hour, bucket in enumerate(hours)
                ],
                "dailyDistribution": [
                    {
                        "day": index + 1,
                        "dayName": DAY_NAMES[index],
                        "sessionCount": bucket.count,
                        "totalTime": bucket.total_time,
                        "avgFocus": _round2(bucket.avg_focus),
                    }
                    for index, bucket in enumerate(weekdays)
                ],
                "focusVsDifficulty": [
                    {
                        "focus": focus,
                        "difficulty": difficulty,
                        "sessionCount": grid[(focus, difficulty)].count,
                        "avgDuration": _round2(grid[(focus, difficulty)].avg_duration),
                    }
                    for focus, difficulty in sorted(grid)
                ],
                "studyMethodEffectiveness": effectiveness(methods, "method"),
                "locationEffectiveness": effectiveness(locations, "location"),
            },
        }

    @staticmethod
    def weekly_progress(sessions, subject, now: datetime = None) -> dict:
        """Minutes studied for a subject this week against its weekly goal."""
        now = now or datetime.now(timezone.utc)
        tz = now.tzinfo
        week = _start_of_week(now)
        week_end = week + timedelta(days=7)

        current = sum(
            session.duration or 0
            for session in sessions
            if session.subject_id == subject.id
            and week <= _localize(session.start_time, tz) < week_end
        )
        return {
            "currentWeekTime": current,
            "progressPercentage": _percentage(current, subject.weekly_goal),
        }

    @staticmethod
    def subject_statistics(sessions, subject, now: datetime = None) -> dict:
        now = now or datetime.now(timezone.utc)
        tz = now.tzinfo
        today = _start_of_day(now)
        week = _start_of_week(now)
        month = today.replace(day=1)
        year = today.replace(month=1, day=1)
        partitions = {
            "thisWeek": (week, week + timedelta(days=7)),
            "thisMonth": (month, _next_month(month)),
            "thisYear": (year, year.replace(year=year.year + 1)),
        }

        own = [session for session in sessions if session.subject_id == subject.id]
        overall = _Bucket()
        buckets = {name: _Bucket() for name in partitions}
        for session in own:
            started = _localize(session.start_time, tz)
            overall.add(session)
            for name, (lo, hi) in partitions.items():
                if lo <= started < hi:
                    buckets[name].add(session)

        recent = sorted(own, key=lambda session: session.start_time, reverse=True)[:RECENT_SESSIONS_LIMIT]

        statistics = {
            name: {"totalTime": bucket.total_time, "sessions": bucket.count}
            for name, bucket in buckets.items()
        }
        statistics["averageSession"] = {
            "avgDuration": _round2(overall.avg_duration),
            "avgFocus": _round2(overall.avg_focus),
        }
        statistics["weeklyProgress"] = _percentage(buckets["thisWeek"].total_time, subject.weekly_goal)

        return {
            "statistics": statistics,
            "recentSessions": [
                {
                    "id": session.id,
                    "startTime": session.start_time.isoformat(),
                    "duration": session.duration,
                    "studyMethod": session.study_method,
                    "focusRating": session.focus_rating,
                }
                for session in recent
            ],
        }

    @staticmethod
    def today_summary(sessions, subjects, now: datetime = None) -> dict:
        """Today's totals with a per-subject breakdown keyed by subject name."""
        now = now or datetime.now(timezone.utc)
        tz = now.tzinfo
        today = _start_of_day(now)
        tomorrow = today + timedelta(days=1)
        subject_by_id = {subject.id: subject for subject in subjects}

        todays = [
            session for session in sessions
            if today <= _localize(session.start_time, tz) < tomorrow
        ]

        breakdown = {}
        for session in todays:
            subject = subject_by_id.get(session.subject_id)
            name = subject.name if subject else "Unknown"
            entry = breakdown.setdefault(
                name, {"time": 0, "sessions": 0, "color": subject.color if subject else None}
            )
            entry["time"] += session.duration or 0
            entry["sessions"] += 1

        return {
            "date": today.date().isoformat(),
            "totalTime": sum(session.duration or 0 for session in todays),
            "totalSessions": len(todays),
            "subjectBreakdown": breakdown,
            "sessions": [
                {
                    "id": session.id,
                    "subject": subject_by_id[session.subject_id].name
                    if session.subject_id in subject_by_id else "Unknown",
                    "duration": session.duration,
                    "formattedDuration": format_duration(session.duration),
                    "startTime": session.start_time.isoformat(),
                    "endTime": session.end_time.isoformat(),
                }
                for session in todays
            ],
        }
