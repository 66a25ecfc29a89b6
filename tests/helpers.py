"""Document factories shared by the tests."""

import datetime

USER_ID = "user1"
OTHER_USER_ID = "user2"


def ts(day, hour=0):
    """Return a UTC timestamp in January 2026."""
    return datetime.datetime(2026, 1, day, hour, tzinfo=datetime.timezone.utc)


def competition_data(
    name="Oscar Pool",
    ceremony_year="2026",
    event="oscars",
    status="open",
    created_at=None,
    **extra,
):
    data = {
        "name": name,
        "createdBy": USER_ID,
        "ceremonyYear": ceremony_year,
        "event": event,
        "inviteCode": "ABC123",
        "participantCount": 2,
        "status": status,
        "createdAt": created_at or ts(1),
        "updatedAt": created_at or ts(1),
    }
    data.update(extra)
    return data


def participant_data(user_id=USER_ID, name="Player One", score=0):
    return {
        "odUserId": user_id,
        "displayName": name,
        "score": score,
        "joinedAt": ts(1),
    }


def vote_data(category_id, nominee_id, voted_at, user_id=USER_ID):
    return {
        "odUserId": user_id,
        "categoryId": category_id,
        "nomineeId": nominee_id,
        "votedAt": voted_at,
    }


def nominee_data(nominee_id, title=None):
    return {
        "id": nominee_id,
        "title": title or nominee_id.title(),
        "imageUrl": f"https://images.example.com/{nominee_id}.jpg",
    }


def category_data(
    name, ceremony_year="2026", event="oscars", display_order=0, **extra
):
    data = {
        "ceremonyYear": ceremony_year,
        "event": event,
        "name": name,
        "displayOrder": display_order,
        "nominees": [nominee_data("anora"), nominee_data("conclave")],
    }
    data.update(extra)
    return data


def ceremony_data(name, year="2026", event="oscars", status="upcoming", date=None):
    return {
        "name": name,
        "year": year,
        "event": event,
        "status": status,
        "date": date or ts(1),
    }


def join(backend, competition_id, user_id=USER_ID, **participant):
    """Add ``user_id`` as a participant of ``competition_id``."""
    backend.set(
        f"competitions/{competition_id}/participants/{user_id}",
        participant_data(user_id, **participant),
    )


def leave(backend, competition_id, user_id=USER_ID):
    """Remove ``user_id`` from ``competition_id``."""
    backend.delete(f"competitions/{competition_id}/participants/{user_id}")
