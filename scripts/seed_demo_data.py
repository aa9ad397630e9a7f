from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from cinema_engine.domain.records import SeatType
from cinema_engine.domain.scheduling import derive_end_time
from cinema_engine.infrastructure.db.models import Base, Movie, Room, Screening, Seat
from cinema_engine.infrastructure.db.session import engine, get_db_session


def _dt(days_from_now: int, hour: int, minute: int) -> datetime:
    now = datetime.now(timezone.utc)
    target = now + timedelta(days=days_from_now)
    return target.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _seat_type(row_label: str, number: int, layout: dict) -> SeatType:
    if row_label in layout.get("vip_rows", ()):
        return SeatType.VIP
    if row_label in layout.get("couple_rows", ()):
        return SeatType.COUPLE
    if f"{row_label}{number}" in layout.get("accessible", ()):
        return SeatType.ACCESSIBLE
    return SeatType.STANDARD


def seed_movies(db) -> dict:
    movie_defs = [
        {"title": "Arrival", "duration_minutes": 116},
        {"title": "Spirited Away", "duration_minutes": 125},
        {"title": "Paperman", "duration_minutes": 90},
    ]

    movies = {}
    for item in movie_defs:
        movie = db.execute(
            select(Movie).where(Movie.title == item["title"])
        ).scalar_one_or_none()
        if movie:
            movie.duration_minutes = item["duration_minutes"]
        else:
            movie = Movie(**item)
            db.add(movie)
            db.flush()
        movies[item["title"]] = movie
    return movies


def seed_rooms(db) -> dict:
    room_defs = [
        {
            "code": "HALL-1",
            "name": "Hall 1",
            "venue_id": 1,
            "rows": "ABC",
            "seats_per_row": 6,
            "layout": {"vip_rows": ("A",), "accessible": ("C1",)},
        },
        {
            "code": "HALL-2",
            "name": "Hall 2 (Couples)",
            "venue_id": 1,
            "rows": "ABCD",
            "seats_per_row": 8,
            "layout": {"couple_rows": ("D",), "accessible": ("A1", "A8")},
        },
    ]

    rooms = {}
    for item in room_defs:
        room = db.execute(
            select(Room).where(Room.code == item["code"])
        ).scalar_one_or_none()
        if room:
            room.name = item["name"]
            room.venue_id = item["venue_id"]
            room.is_active = True
            rooms[item["code"]] = room
            continue

        room = Room(code=item["code"], name=item["name"], venue_id=item["venue_id"])
        db.add(room)
        db.flush()

        for row_label in item["rows"]:
            for number in range(1, item["seats_per_row"] + 1):
                db.add(
                    Seat(
                        room_id=room.id,
                        row_label=row_label,
                        seat_number=number,
                        seat_type=_seat_type(row_label, number, item["layout"]),
                    )
                )
        rooms[item["code"]] = room
    return rooms


def seed_screenings(db, movies: dict, rooms: dict) -> None:
    screening_defs = [
        {"movie": "Arrival", "room": "HALL-1", "start_time": _dt(1, 18, 0), "base_price": 250},
        {"movie": "Paperman", "room": "HALL-1", "start_time": _dt(1, 20, 30), "base_price": 180},
        {"movie": "Spirited Away", "room": "HALL-2", "start_time": _dt(2, 19, 0), "base_price": 220},
    ]

    for item in screening_defs:
        movie = movies[item["movie"]]
        room = rooms[item["room"]]
        existing = db.execute(
            select(Screening)
            .where(Screening.movie_id == movie.id)
            .where(Screening.room_id == room.id)
            .where(Screening.start_time == item["start_time"])
        ).scalar_one_or_none()
        if existing:
            existing.base_price = item["base_price"]
            continue

        db.add(
            Screening(
                movie_id=movie.id,
                room_id=room.id,
                start_time=item["start_time"],
                end_time=derive_end_time(movie.duration_minutes, item["start_time"]),
                base_price=item["base_price"],
            )
        )


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with get_db_session() as db:
        movies = seed_movies(db)
        rooms = seed_rooms(db)
        seed_screenings(db, movies, rooms)
    print("Seed complete: 3 movies, HALL-1 and HALL-2 with seats, 3 screenings added.")


if __name__ == "__main__":
    main()
